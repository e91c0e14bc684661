import asyncio
import sys
from pathlib import Path

import pytest

from engines.transcription import WhisperTranscriber, clean_transcript, resolve_audio_path
from services.errors import TranscriptionFailed


def _audio(root: Path, name: str, script: str) -> str:
    """Write a python script posing as an audio file; the transcriber runs it."""

    target = root / "uploads" / "audio" / name
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(script)
    return f"/uploads/audio/{name}"


def _transcriber(root: Path, timeout_s: float = 10) -> WhisperTranscriber:
    return WhisperTranscriber(sys.executable, [], audio_root=str(root), timeout_s=timeout_s)


def test_clean_transcript_drops_timestamps():
    raw = "[00:00.000 --> 00:03.240]  Hooks let function components\n\n[00:03.240 --> 00:05.000] hold state.\n"
    assert clean_transcript(raw) == "Hooks let function components hold state."
    assert clean_transcript("[01:02:03.000 --> 01:02:04.500] late answer") == "late answer"
    assert clean_transcript("\n  \n") == ""


def test_resolve_audio_path(tmp_path):
    assert resolve_audio_path("/uploads/audio/a.webm", str(tmp_path)) == tmp_path / "uploads" / "audio" / "a.webm"
    assert resolve_audio_path("uploads/b.webm", str(tmp_path)) == tmp_path / "uploads" / "b.webm"


def test_successful_run(tmp_path):
    ref = _audio(
        tmp_path,
        "ok.webm",
        "print('[00:00.000 --> 00:02.000]  A closure captures')\nprint('[00:02.000 --> 00:04.000] its scope.')\n",
    )
    assert asyncio.run(_transcriber(tmp_path)(ref)) == "A closure captures its scope."


def test_missing_audio(tmp_path):
    with pytest.raises(TranscriptionFailed) as info:
        asyncio.run(_transcriber(tmp_path)("/uploads/audio/none.webm"))
    assert "not found" in info.value.reason


def test_nonzero_exit(tmp_path):
    ref = _audio(tmp_path, "bad.webm", "import sys\nsys.stderr.write('model not loaded\\n')\nsys.exit(2)\n")
    with pytest.raises(TranscriptionFailed) as info:
        asyncio.run(_transcriber(tmp_path)(ref))
    assert info.value.reason == "transcription failed with code 2: model not loaded"


def test_empty_output(tmp_path):
    ref = _audio(tmp_path, "silent.webm", "pass\n")
    with pytest.raises(TranscriptionFailed) as info:
        asyncio.run(_transcriber(tmp_path)(ref))
    assert info.value.reason == "transcription produced no text"


def test_timeout_kills_process(tmp_path):
    ref = _audio(tmp_path, "slow.webm", "import time\ntime.sleep(30)\nprint('late')\n")
    with pytest.raises(TranscriptionFailed) as info:
        asyncio.run(_transcriber(tmp_path, timeout_s=0.5)(ref))
    assert "timed out" in info.value.reason


def test_missing_binary(tmp_path):
    ref = _audio(tmp_path, "any.webm", "print('x')\n")
    transcriber = WhisperTranscriber(str(tmp_path / "no-whisper"), [], audio_root=str(tmp_path))
    with pytest.raises(TranscriptionFailed) as info:
        asyncio.run(transcriber(ref))
    assert "could not start" in info.value.reason

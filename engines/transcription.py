"""Speech-to-text adapter backed by the whisper command line tool."""
from __future__ import annotations

import asyncio
import logging
import re
import shlex
from pathlib import Path
from typing import Optional, Sequence

from config.settings import settings
from services.errors import TranscriptionFailed

logger = logging.getLogger(__name__)

_TIMESTAMP = re.compile(r"^\s*\[\d{1,2}:\d{2}(?::\d{2})?\.\d{3}\s*-->\s*\d{1,2}:\d{2}(?::\d{2})?\.\d{3}\]\s*")


def resolve_audio_path(audio_ref: str, root: Optional[str] = None) -> Path:
    """Map an opaque stored reference such as ``/uploads/audio/x.webm`` onto disk."""

    base = Path(root if root is not None else settings.AUDIO_ROOT)
    return base / audio_ref.lstrip("/\\")


def clean_transcript(raw: str) -> str:
    """Drop segment timestamps and blank lines from whisper output."""

    lines = [_TIMESTAMP.sub("", line).strip() for line in raw.splitlines()]
    return " ".join(line for line in lines if line)


class WhisperTranscriber:
    """Runs ``whisper <file> <args>`` and returns its cleaned stdout."""

    def __init__(
        self,
        binary: Optional[str] = None,
        args: Optional[Sequence[str]] = None,
        *,
        audio_root: Optional[str] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        self.binary = binary or settings.WHISPER_BIN
        self.args = list(args) if args is not None else shlex.split(settings.WHISPER_ARGS)
        self.audio_root = audio_root
        self.timeout_s = timeout_s or settings.TRANSCRIBE_TIMEOUT_S

    async def __call__(self, audio_ref: str) -> str:
        path = resolve_audio_path(audio_ref, self.audio_root)
        if not path.is_file():
            raise TranscriptionFailed(f"audio file not found: {audio_ref}")

        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary,
                str(path),
                *self.args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise TranscriptionFailed(f"could not start {self.binary}: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_s)
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise TranscriptionFailed(f"transcription timed out after {self.timeout_s:.0f}s") from exc
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip().splitlines()
            logger.error("whisper exited with code %s for %s", proc.returncode, audio_ref)
            reason = f"transcription failed with code {proc.returncode}"
            if detail:
                reason += f": {detail[-1][:200]}"
            raise TranscriptionFailed(reason)

        text = clean_transcript(stdout.decode("utf-8", errors="replace"))
        if not text:
            raise TranscriptionFailed("transcription produced no text")
        return text


__all__ = ["WhisperTranscriber", "clean_transcript", "resolve_audio_path"]

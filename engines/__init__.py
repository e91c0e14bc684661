"""Transcription and scoring engine adapters."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from config.registry import SCORER_KEY, TRANSCRIBER_KEY, bind_model

from .scoring import LlmScorer, ScoreRequest, Verdict, build_prompt, parse_verdict
from .transcription import WhisperTranscriber, clean_transcript, resolve_audio_path


def bind_defaults(config_path: Optional[Path] = None) -> None:
    """Bind the whisper transcriber and configured LLM scorer into the registry."""

    bind_model(TRANSCRIBER_KEY, WhisperTranscriber())
    bind_model(SCORER_KEY, LlmScorer.from_config(config_path))


__all__ = [
    "LlmScorer",
    "ScoreRequest",
    "Verdict",
    "WhisperTranscriber",
    "bind_defaults",
    "build_prompt",
    "clean_transcript",
    "parse_verdict",
    "resolve_audio_path",
]

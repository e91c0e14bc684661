"""Application settings and configuration management."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/interview.db")
    APP_CONFIG_PATH: str = Field(default="app_config.json")

    # Audio references are stored relative to this directory by the upload layer.
    AUDIO_ROOT: str = "public"
    WHISPER_BIN: str = "whisper"
    WHISPER_ARGS: str = "--output_format txt"

    TRANSCRIBE_TIMEOUT_S: float = Field(default=300.0, gt=0)
    SCORING_TIMEOUT_S: float = Field(default=60.0, gt=0)
    EVAL_CONCURRENCY: int = Field(default=4, ge=1)

    SCORING_TARGET: str = "evaluation.score_response"

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True, extra="ignore")


settings = Settings()

"""Record models returned by the persistence layer."""
from __future__ import annotations

import sqlite3
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SessionStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    EVALUATED = "evaluated"


ACTIVE_STATUSES = (SessionStatus.PENDING, SessionStatus.IN_PROGRESS)


class CandidateRecord(BaseModel):
    candidate_id: str
    username: str
    created_at: str


class QuestionRecord(BaseModel):
    question_id: str
    text: str
    tech_stack: str
    created_by: str
    created_at: str


class SessionRecord(BaseModel):
    session_id: str
    candidate_id: str
    tech_stack: str
    status: SessionStatus
    started_at: str
    ended_at: Optional[str] = None
    created_at: str


class ResponseRecord(BaseModel):
    response_id: str
    session_id: str
    question_id: str
    audio_path: str
    transcription: Optional[str] = None
    score: Optional[int] = Field(default=None, ge=1, le=10)
    justification: Optional[str] = None
    created_at: str

    @property
    def is_evaluated(self) -> bool:
        return bool(self.transcription) and self.score is not None and bool(self.justification)


def from_row(model, row: sqlite3.Row):  # Build a record model from a SQLite row
    return model(**{key: row[key] for key in row.keys()})


__all__ = [
    "ACTIVE_STATUSES",
    "CandidateRecord",
    "QuestionRecord",
    "ResponseRecord",
    "SessionRecord",
    "SessionStatus",
    "from_row",
]

"""Persistence helpers for recorded responses and their evaluation fields."""
from __future__ import annotations

import sqlite3
import uuid
from typing import List, Optional

from pydantic import BaseModel, Field

from services.errors import DuplicateResponse

from .models import ResponseRecord, from_row
from .sqlite import get_conn, utcnow

_COLUMNS = "response_id, session_id, question_id, audio_path, transcription, score, justification, created_at"


class ResponsePayload(BaseModel):
    session_id: str
    question_id: str
    audio_path: str = Field(min_length=1)


class EvaluationPayload(BaseModel):
    transcription: str = Field(min_length=1)
    score: int = Field(ge=1, le=10)
    justification: str = Field(min_length=1)


def insert_response(**data: str) -> ResponseRecord:
    """Insert a response row; one response per question per session."""

    payload = ResponsePayload(**data)
    record = ResponseRecord(response_id=uuid.uuid4().hex, created_at=utcnow(), **payload.model_dump())
    try:
        with get_conn() as conn:
            conn.execute(
                "INSERT INTO responses (response_id, session_id, question_id, audio_path, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (record.response_id, record.session_id, record.question_id, record.audio_path, record.created_at),
            )
    except sqlite3.IntegrityError as exc:
        raise DuplicateResponse(
            f"Question {payload.question_id} already answered in session {payload.session_id}"
        ) from exc
    return record


def find_response(response_id: str) -> Optional[ResponseRecord]:
    with get_conn() as conn:
        row = conn.execute(f"SELECT {_COLUMNS} FROM responses WHERE response_id = ?", (response_id,)).fetchone()
    return from_row(ResponseRecord, row) if row else None


def find_responses(session_id: str) -> List[ResponseRecord]:
    """Return a session's responses in submission order."""

    with get_conn() as conn:
        rows = conn.execute(
            f"SELECT {_COLUMNS} FROM responses WHERE session_id = ? ORDER BY created_at, rowid",
            (session_id,),
        ).fetchall()
    return [from_row(ResponseRecord, row) for row in rows]


def update_response_evaluation(response_id: str, transcription: str, score: int, justification: str) -> bool:
    """Write all three evaluation fields in a single statement.

    Returns ``False`` when the response is missing or already evaluated.
    """

    payload = EvaluationPayload(transcription=transcription, score=score, justification=justification)
    with get_conn() as conn:
        cur = conn.execute(
            """UPDATE responses
               SET transcription = ?, score = ?, justification = ?
               WHERE response_id = ? AND score IS NULL""",
            (payload.transcription, payload.score, payload.justification, response_id),
        )
        return cur.rowcount == 1


def update_response_transcription(response_id: str, transcription: str) -> bool:
    """Store a transcript on a response that has no score yet."""

    if not transcription:
        raise ValueError("transcription must be non-empty")
    with get_conn() as conn:
        cur = conn.execute(
            "UPDATE responses SET transcription = ? WHERE response_id = ? AND score IS NULL",
            (transcription, response_id),
        )
        return cur.rowcount == 1

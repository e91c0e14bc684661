"""Persistence helpers for candidates."""
from __future__ import annotations

import sqlite3
import uuid
from typing import List, Optional

from pydantic import BaseModel, Field

from services.errors import InterviewError

from .models import CandidateRecord, from_row
from .sqlite import get_conn, utcnow


class CandidatePayload(BaseModel):
    username: str = Field(min_length=1)


def insert_candidate(**data: str) -> CandidateRecord:
    """Insert a candidate row and return the stored record."""

    payload = CandidatePayload(**data)
    record = CandidateRecord(candidate_id=uuid.uuid4().hex, username=payload.username, created_at=utcnow())
    try:
        with get_conn() as conn:
            conn.execute(
                "INSERT INTO candidates (candidate_id, username, created_at) VALUES (?, ?, ?)",
                (record.candidate_id, record.username, record.created_at),
            )
    except sqlite3.IntegrityError as exc:
        raise InterviewError(f"Username '{payload.username}' is already taken") from exc
    return record


def find_candidate(candidate_id: str) -> Optional[CandidateRecord]:
    with get_conn() as conn:
        row = conn.execute(
            "SELECT candidate_id, username, created_at FROM candidates WHERE candidate_id = ?",
            (candidate_id,),
        ).fetchone()
    return from_row(CandidateRecord, row) if row else None


def list_candidates() -> List[CandidateRecord]:
    """List candidates ordered by username."""

    with get_conn() as conn:
        rows = conn.execute(
            "SELECT candidate_id, username, created_at FROM candidates ORDER BY username"
        ).fetchall()
    return [from_row(CandidateRecord, row) for row in rows]

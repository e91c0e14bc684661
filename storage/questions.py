"""Persistence helpers for the question bank."""
from __future__ import annotations

import uuid
from typing import List, Optional

from pydantic import BaseModel, Field

from .models import QuestionRecord, from_row
from .sqlite import get_conn, utcnow

_COLUMNS = "question_id, text, tech_stack, created_by, created_at"


class QuestionPayload(BaseModel):
    text: str = Field(min_length=1)
    tech_stack: str = Field(min_length=1)
    created_by: str


def insert_question(**data: str) -> QuestionRecord:
    """Insert a question row and return the stored record."""

    payload = QuestionPayload(**data)
    record = QuestionRecord(question_id=uuid.uuid4().hex, created_at=utcnow(), **payload.model_dump())
    with get_conn() as conn:
        conn.execute(
            f"INSERT INTO questions ({_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
            (record.question_id, record.text, record.tech_stack, record.created_by, record.created_at),
        )
    return record


def find_question(question_id: str) -> Optional[QuestionRecord]:
    with get_conn() as conn:
        row = conn.execute(f"SELECT {_COLUMNS} FROM questions WHERE question_id = ?", (question_id,)).fetchone()
    return from_row(QuestionRecord, row) if row else None


def list_questions(tech_stack: Optional[str] = None) -> List[QuestionRecord]:
    """List questions in creation order, optionally for one tech stack."""

    query = f"SELECT {_COLUMNS} FROM questions"
    params: tuple = ()
    if tech_stack is not None:
        query += " WHERE tech_stack = ?"
        params = (tech_stack,)
    query += " ORDER BY created_at, rowid"
    with get_conn() as conn:
        rows = conn.execute(query, params).fetchall()
    return [from_row(QuestionRecord, row) for row in rows]


def list_tech_stacks() -> List[str]:
    with get_conn() as conn:
        rows = conn.execute("SELECT DISTINCT tech_stack FROM questions ORDER BY tech_stack").fetchall()
    return [row["tech_stack"] for row in rows]

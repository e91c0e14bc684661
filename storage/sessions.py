"""Persistence helpers for interview sessions."""
from __future__ import annotations

import sqlite3
import uuid
from typing import List, Optional

from services.errors import Conflict, DuplicateActiveSession, SessionNotFound

from .models import ACTIVE_STATUSES, SessionRecord, SessionStatus, from_row
from .sqlite import get_conn, utcnow

_COLUMNS = "session_id, candidate_id, tech_stack, status, started_at, ended_at, created_at"


def create_session(candidate_id: str, tech_stack: str) -> SessionRecord:
    """Insert a pending session for ``candidate_id``.

    The active-session check and the insert share one write transaction and
    the partial unique index rejects a second active row, so concurrent
    callers cannot both succeed.

    Raises:
        DuplicateActiveSession: If the candidate already has a pending or
            in-progress session.
    """

    now = utcnow()
    record = SessionRecord(
        session_id=uuid.uuid4().hex,
        candidate_id=candidate_id,
        tech_stack=tech_stack,
        status=SessionStatus.PENDING,
        started_at=now,
        created_at=now,
    )
    try:
        with get_conn() as conn:
            conn.execute("BEGIN IMMEDIATE")
            active = conn.execute(
                "SELECT session_id FROM interview_sessions WHERE candidate_id = ? AND status IN (?, ?)",
                (candidate_id, *(status.value for status in ACTIVE_STATUSES)),
            ).fetchone()
            if active is not None:
                raise DuplicateActiveSession(
                    f"Candidate {candidate_id} already has an active interview",
                    details={"session_id": active["session_id"]},
                )
            conn.execute(
                f"INSERT INTO interview_sessions ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    record.session_id,
                    record.candidate_id,
                    record.tech_stack,
                    record.status.value,
                    record.started_at,
                    record.ended_at,
                    record.created_at,
                ),
            )
    except sqlite3.IntegrityError as exc:
        raise DuplicateActiveSession(f"Candidate {candidate_id} already has an active interview") from exc
    return record


def find_session(session_id: str) -> Optional[SessionRecord]:
    with get_conn() as conn:
        row = conn.execute(
            f"SELECT {_COLUMNS} FROM interview_sessions WHERE session_id = ?", (session_id,)
        ).fetchone()
    return from_row(SessionRecord, row) if row else None


def find_active_session(candidate_id: str) -> Optional[SessionRecord]:
    with get_conn() as conn:
        row = conn.execute(
            f"SELECT {_COLUMNS} FROM interview_sessions WHERE candidate_id = ? AND status IN (?, ?)",
            (candidate_id, *(status.value for status in ACTIVE_STATUSES)),
        ).fetchone()
    return from_row(SessionRecord, row) if row else None


def list_sessions(status: Optional[SessionStatus] = None) -> List[SessionRecord]:
    """List sessions newest first, optionally filtered by status."""

    query = f"SELECT {_COLUMNS} FROM interview_sessions"
    params: tuple = ()
    if status is not None:
        query += " WHERE status = ?"
        params = (SessionStatus(status).value,)
    query += " ORDER BY created_at DESC, rowid DESC"
    with get_conn() as conn:
        rows = conn.execute(query, params).fetchall()
    return [from_row(SessionRecord, row) for row in rows]


def update_session_status(
    session_id: str,
    expected_prior: SessionStatus,
    next_status: SessionStatus,
    *,
    ended_at: Optional[str] = None,
) -> SessionRecord:
    """Move a session to ``next_status`` only if it is still ``expected_prior``.

    Raises:
        SessionNotFound: If the session does not exist.
        Conflict: If the stored status no longer matches ``expected_prior``.
    """

    expected_prior = SessionStatus(expected_prior)
    next_status = SessionStatus(next_status)
    with get_conn() as conn:
        if ended_at is None:
            cur = conn.execute(
                "UPDATE interview_sessions SET status = ? WHERE session_id = ? AND status = ?",
                (next_status.value, session_id, expected_prior.value),
            )
        else:
            cur = conn.execute(
                "UPDATE interview_sessions SET status = ?, ended_at = ? WHERE session_id = ? AND status = ?",
                (next_status.value, ended_at, session_id, expected_prior.value),
            )
        if cur.rowcount == 0:
            row = conn.execute(
                "SELECT status FROM interview_sessions WHERE session_id = ?", (session_id,)
            ).fetchone()
            if row is None:
                raise SessionNotFound(f"Session {session_id} not found")
            raise Conflict(
                f"Session {session_id} is '{row['status']}', expected '{expected_prior.value}'",
                details={"actual": row["status"], "expected": expected_prior.value},
            )
        row = conn.execute(
            f"SELECT {_COLUMNS} FROM interview_sessions WHERE session_id = ?", (session_id,)
        ).fetchone()
    return from_row(SessionRecord, row)

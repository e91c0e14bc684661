"""Interview session lifecycle: the only writer of session status.

States run ``pending -> in-progress -> completed -> evaluated``. The
transition table is a pure function over ``(status, action)``; the
persistence step re-checks the prior status inside the store's UPDATE so
two racing transitions on one session cannot both succeed.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, List, Optional, Tuple

from observability import log_event
from services.errors import (
    CandidateNotFound,
    Conflict,
    InvalidTransition,
    NotSessionOwner,
    QuestionNotFound,
    SessionNotFound,
)
from storage.candidates import find_candidate, list_candidates
from storage.models import (
    CandidateRecord,
    QuestionRecord,
    ResponseRecord,
    SessionRecord,
    SessionStatus,
)
from storage.questions import find_question, list_questions, list_tech_stacks
from storage.responses import insert_response
from storage.sessions import (
    create_session,
    find_active_session,
    find_session,
    list_sessions,
    update_session_status,
)
from storage.sqlite import utcnow

logger = logging.getLogger(__name__)


class SessionAction(str, Enum):
    JOIN = "join"
    COMPLETE = "complete"
    EVALUATE = "evaluate"  # Issued only by the evaluation pipeline


PUBLIC_ACTIONS = (SessionAction.JOIN, SessionAction.COMPLETE)

TRANSITIONS: Dict[Tuple[SessionStatus, SessionAction], SessionStatus] = {
    (SessionStatus.PENDING, SessionAction.JOIN): SessionStatus.IN_PROGRESS,
    (SessionStatus.IN_PROGRESS, SessionAction.COMPLETE): SessionStatus.COMPLETED,
    (SessionStatus.COMPLETED, SessionAction.EVALUATE): SessionStatus.EVALUATED,
}


def next_status(status: SessionStatus, action: SessionAction) -> SessionStatus:
    """Return the status reached by applying ``action`` to ``status``.

    Raises:
        InvalidTransition: For every pair outside the transition table.
    """

    status = SessionStatus(status)
    action = SessionAction(action)
    target = TRANSITIONS.get((status, action))
    if target is None:
        raise InvalidTransition(
            f"Cannot {action.value} a session that is {status.value}",
            details={"status": status.value, "action": action.value},
        )
    return target


def _require_session(session_id: str) -> SessionRecord:
    session = find_session(session_id)
    if session is None:
        raise SessionNotFound(f"Session {session_id} not found")
    return session


def start_session(candidate_id: str, tech_stack: str) -> SessionRecord:
    """Create a pending session for a candidate with no active interview."""

    tech_stack = (tech_stack or "").strip()
    if not tech_stack:
        raise ValueError("tech_stack is required")
    if find_candidate(candidate_id) is None:
        raise CandidateNotFound(f"Candidate {candidate_id} not found")
    session = create_session(candidate_id, tech_stack)
    log_event(
        "session_created",
        session.session_id,
        action="create",
        to_status=session.status.value,
        candidate_id=candidate_id,
        tech_stack=tech_stack,
    )
    return session


def transition_session(
    session_id: str,
    action: SessionAction | str,
    *,
    candidate_id: Optional[str] = None,
) -> SessionRecord:
    """Apply a candidate or operator action to a session.

    ``candidate_id`` identifies the acting candidate; ``None`` means an
    operator. Joining is reserved for the assigned candidate, completing is
    open to the candidate or an operator.
    """

    action = SessionAction(action)
    if action not in PUBLIC_ACTIONS:
        raise InvalidTransition(f"Action '{action.value}' is reserved for the evaluation pipeline")

    session = _require_session(session_id)
    if candidate_id is not None and candidate_id != session.candidate_id:
        raise NotSessionOwner(f"Session {session_id} is not assigned to candidate {candidate_id}")
    if action is SessionAction.JOIN and candidate_id is None:
        raise NotSessionOwner("Only the assigned candidate can join a session")

    target = next_status(session.status, action)
    ended_at = utcnow() if target is SessionStatus.COMPLETED else None
    updated = update_session_status(session_id, session.status, target, ended_at=ended_at)
    log_event(
        "session_transition",
        session_id,
        action=action.value,
        from_status=session.status.value,
        to_status=target.value,
        actor="candidate" if candidate_id else "operator",
    )
    return updated


def mark_evaluated(session_id: str) -> SessionRecord:
    """Move a completed session to ``evaluated``.

    A lost optimistic update is retried once after re-reading the session;
    a second conflict is surfaced to the caller. A session another run has
    already moved to ``evaluated`` is returned as is.
    """

    target = next_status(SessionStatus.COMPLETED, SessionAction.EVALUATE)
    try:
        updated = update_session_status(session_id, SessionStatus.COMPLETED, target)
    except Conflict as first:
        session = _require_session(session_id)
        if session.status is target:
            logger.info("Session %s already evaluated by another run", session_id)
            return session
        logger.warning(
            "Conflict marking session %s evaluated (now %s); retrying once",
            session_id,
            session.status.value,
        )
        if session.status is not SessionStatus.COMPLETED:
            raise Conflict(
                f"Session {session_id} left 'completed' during evaluation (now '{session.status.value}')",
                details={"actual": session.status.value},
            ) from first
        updated = update_session_status(session_id, SessionStatus.COMPLETED, target)
    log_event(
        "session_transition",
        session_id,
        action=SessionAction.EVALUATE.value,
        from_status=SessionStatus.COMPLETED.value,
        to_status=target.value,
        actor="pipeline",
    )
    return updated


def record_response(session_id: str, candidate_id: str, question_id: str, audio_path: str) -> ResponseRecord:
    """Register a submitted answer handed over by the upload collaborator."""

    session = _require_session(session_id)
    if session.candidate_id != candidate_id:
        raise NotSessionOwner(f"Session {session_id} is not assigned to candidate {candidate_id}")
    if session.status is not SessionStatus.IN_PROGRESS:
        raise InvalidTransition(
            f"Answers can only be submitted while a session is in-progress (is {session.status.value})",
            details={"status": session.status.value},
        )
    if find_question(question_id) is None:
        raise QuestionNotFound(f"Question {question_id} not found")
    response = insert_response(session_id=session_id, question_id=question_id, audio_path=audio_path)
    log_event("response_recorded", session_id, response_id=response.response_id, question_id=question_id)
    return response


def get_session(session_id: str) -> SessionRecord:
    return _require_session(session_id)


def active_session_for(candidate_id: str) -> Optional[SessionRecord]:
    return find_active_session(candidate_id)


def sessions(status: Optional[SessionStatus] = None) -> List[SessionRecord]:
    return list_sessions(status)


def questions_for_session(session_id: str) -> List[QuestionRecord]:
    """The question pool for a session's tech stack."""

    session = _require_session(session_id)
    return list_questions(session.tech_stack)


def tech_stacks() -> List[str]:
    return list_tech_stacks()


def candidates() -> List[CandidateRecord]:
    return list_candidates()


__all__ = [
    "PUBLIC_ACTIONS",
    "SessionAction",
    "TRANSITIONS",
    "active_session_for",
    "candidates",
    "get_session",
    "mark_evaluated",
    "next_status",
    "questions_for_session",
    "record_response",
    "sessions",
    "start_session",
    "tech_stacks",
    "transition_session",
]

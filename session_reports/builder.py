from __future__ import annotations  # Assemble session reports from stored records

from typing import Dict, List, Optional

from services.errors import SessionNotFound
from storage.candidates import find_candidate
from storage.models import QuestionRecord, ResponseRecord
from storage.questions import find_question
from storage.responses import find_responses
from storage.sessions import find_session

from .models import ItemState, ReportItem, SessionMeta, SessionReport

UNKNOWN = "Unknown"


def _state(response: ResponseRecord) -> ItemState:  # Classify a response for display
    if response.is_evaluated:
        return "evaluated"
    if response.transcription:
        return "unresolved"
    return "pending"


def _round1(value: float) -> float:
    return float(f"{value:.1f}")


def get_report(session_id: str) -> SessionReport:  # Build the report for a session
    session = find_session(session_id)
    if session is None:
        raise SessionNotFound(f"Session {session_id} not found")
    candidate = find_candidate(session.candidate_id)

    responses = find_responses(session_id)
    questions: Dict[str, Optional[QuestionRecord]] = {}
    items: List[ReportItem] = []
    for response in responses:
        if response.question_id not in questions:
            questions[response.question_id] = find_question(response.question_id)
        question = questions[response.question_id]
        items.append(
            ReportItem(
                response_id=response.response_id,
                question_id=response.question_id,
                question=question.text if question else UNKNOWN,
                audio_path=response.audio_path,
                transcription=response.transcription,
                score=response.score,
                justification=response.justification,
                state=_state(response),
            )
        )

    scores = [item.score for item in items if item.state == "evaluated" and item.score is not None]
    average = _round1(sum(scores) / len(scores)) if scores else None

    return SessionReport(
        session=SessionMeta(
            session_id=session.session_id,
            candidate_id=session.candidate_id,
            candidate=candidate.username if candidate else UNKNOWN,
            tech_stack=session.tech_stack,
            status=session.status,
            started_at=session.started_at,
            ended_at=session.ended_at,
        ),
        items=items,
        average_score=average,
    )


__all__ = ["get_report"]

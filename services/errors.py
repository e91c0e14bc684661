"""Domain errors raised by the lifecycle manager and evaluation pipeline."""
from __future__ import annotations

from typing import Any, Dict, Optional


class InterviewError(RuntimeError):  # Base error for interview services
    code = "interview_error"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidTransition(InterviewError):
    code = "invalid_transition"


class DuplicateActiveSession(InterviewError):
    code = "duplicate_active_session"


class SessionNotReady(InterviewError):
    code = "session_not_ready"


class NoResponses(InterviewError):
    code = "no_responses"


class Conflict(InterviewError):  # Optimistic status update lost a race
    code = "conflict"


class SessionNotFound(InterviewError):
    code = "session_not_found"


class CandidateNotFound(InterviewError):
    code = "candidate_not_found"


class QuestionNotFound(InterviewError):
    code = "question_not_found"


class NotSessionOwner(InterviewError):
    code = "not_session_owner"


class DuplicateResponse(InterviewError):
    code = "duplicate_response"


class EngineError(InterviewError):  # Per-response engine failure, recovered by the pipeline
    code = "engine_error"

    def __init__(self, reason: str) -> None:
        super().__init__(reason, details={"reason": reason})
        self.reason = reason


class TranscriptionFailed(EngineError):
    code = "transcription_failed"


class ScoringFailed(EngineError):
    code = "scoring_failed"


class EvaluationCancelled(InterviewError):
    code = "evaluation_cancelled"

    def __init__(self, message: str, *, summary: Any) -> None:
        super().__init__(message)
        self.summary = summary


__all__ = [
    "InterviewError",
    "InvalidTransition",
    "DuplicateActiveSession",
    "SessionNotReady",
    "NoResponses",
    "Conflict",
    "SessionNotFound",
    "CandidateNotFound",
    "QuestionNotFound",
    "NotSessionOwner",
    "DuplicateResponse",
    "EngineError",
    "TranscriptionFailed",
    "ScoringFailed",
    "EvaluationCancelled",
]

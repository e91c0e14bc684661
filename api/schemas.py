"""Pydantic schemas for the interview session API."""
from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from services.evaluation import ResponseOutcome
from storage.models import SessionStatus


class StartReq(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    candidate_id: str
    tech_stack: str = Field(min_length=1)


class ActorReq(BaseModel):
    candidate_id: Optional[str] = None


class TransitionReq(ActorReq):
    action: Literal["join", "complete"]


class SubmitReq(BaseModel):
    candidate_id: str
    question_id: str
    audio_path: str = Field(min_length=1)


class EvaluateReq(BaseModel):
    session_id: str


class SessionOut(BaseModel):
    session_id: str
    candidate_id: str
    tech_stack: str
    status: SessionStatus
    started_at: str
    ended_at: Optional[str] = None


class ResponseOut(BaseModel):
    response_id: str
    session_id: str
    question_id: str
    audio_path: str


class QuestionOut(BaseModel):
    question_id: str
    text: str
    tech_stack: str


class CandidateOut(BaseModel):
    candidate_id: str
    username: str


class EvaluationOut(BaseModel):
    session_id: str
    attempted: int
    succeeded: int
    failed: int
    skipped: int
    missing_questions: int
    unresolved: int
    cancelled: int
    failures: List[ResponseOutcome] = Field(default_factory=list)
    outcomes: List[ResponseOutcome] = Field(default_factory=list)


class TechStacksOut(BaseModel):
    tech_stacks: List[str] = Field(default_factory=list)

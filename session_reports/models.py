from __future__ import annotations  # Session report domain models

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from storage.models import SessionStatus

ItemState = Literal["evaluated", "unresolved", "pending"]


class ReportItem(BaseModel):  # One answered question with its evaluation fields
    response_id: str
    question_id: str
    question: str
    audio_path: str
    transcription: Optional[str] = None
    score: Optional[int] = None
    justification: Optional[str] = None
    state: ItemState = "pending"


class SessionMeta(BaseModel):  # Session header shown at the top of a report
    session_id: str
    candidate_id: str
    candidate: str
    tech_stack: str
    status: SessionStatus
    started_at: str
    ended_at: Optional[str] = None


class SessionReport(BaseModel):  # Report for one interview session
    session: SessionMeta
    items: List[ReportItem] = Field(default_factory=list)
    average_score: Optional[float] = None

    @property
    def evaluated_count(self) -> int:
        return sum(1 for item in self.items if item.state == "evaluated")


__all__ = ["ItemState", "ReportItem", "SessionMeta", "SessionReport"]

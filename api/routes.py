"""FastAPI routes for interview session control and evaluation."""
from __future__ import annotations

from typing import Dict, List, Optional, Type

from fastapi import APIRouter, HTTPException, Response

from api.schemas import (
    ActorReq,
    CandidateOut,
    EvaluateReq,
    EvaluationOut,
    QuestionOut,
    ResponseOut,
    SessionOut,
    StartReq,
    SubmitReq,
    TechStacksOut,
    TransitionReq,
)
from services import lifecycle
from services.errors import (
    CandidateNotFound,
    Conflict,
    DuplicateActiveSession,
    DuplicateResponse,
    EvaluationCancelled,
    InterviewError,
    InvalidTransition,
    NoResponses,
    NotSessionOwner,
    QuestionNotFound,
    SessionNotFound,
    SessionNotReady,
)
from services.evaluation import run_evaluation
from session_reports import SessionReport, get_report, render_report_pdf
from storage.models import SessionStatus


router = APIRouter(prefix="/api/interview")
catalog_router = APIRouter(prefix="/api")

_STATUS_CODES: Dict[Type[InterviewError], int] = {
    SessionNotFound: 404,
    CandidateNotFound: 404,
    QuestionNotFound: 404,
    NoResponses: 404,
    NotSessionOwner: 403,
    DuplicateActiveSession: 409,
    DuplicateResponse: 409,
    InvalidTransition: 409,
    SessionNotReady: 409,
    Conflict: 409,
    EvaluationCancelled: 409,
}


def _http_error(exc: InterviewError) -> HTTPException:
    status_code = 400
    for error_type, code in _STATUS_CODES.items():
        if isinstance(exc, error_type):
            status_code = code
            break
    return HTTPException(status_code=status_code, detail={"code": exc.code, "message": exc.message})


def _session_out(record) -> SessionOut:
    return SessionOut(**record.model_dump(exclude={"created_at"}))


@router.post("/start", response_model=SessionOut)
def start(req: StartReq) -> SessionOut:
    try:
        record = lifecycle.start_session(req.candidate_id, req.tech_stack)
    except InterviewError as exc:
        raise _http_error(exc) from exc
    return _session_out(record)


@router.post("/{session_id}/transition", response_model=SessionOut)
def transition(session_id: str, req: TransitionReq) -> SessionOut:
    try:
        record = lifecycle.transition_session(session_id, req.action, candidate_id=req.candidate_id)
    except InterviewError as exc:
        raise _http_error(exc) from exc
    return _session_out(record)


@router.post("/{session_id}/join", response_model=SessionOut)
def join(session_id: str, req: ActorReq) -> SessionOut:
    return transition(session_id, TransitionReq(action="join", candidate_id=req.candidate_id))


@router.post("/{session_id}/complete", response_model=SessionOut)
def complete(session_id: str, req: ActorReq) -> SessionOut:
    return transition(session_id, TransitionReq(action="complete", candidate_id=req.candidate_id))


@router.post("/{session_id}/submit", response_model=ResponseOut)
def submit(session_id: str, req: SubmitReq) -> ResponseOut:
    try:
        record = lifecycle.record_response(session_id, req.candidate_id, req.question_id, req.audio_path)
    except InterviewError as exc:
        raise _http_error(exc) from exc
    return ResponseOut(**record.model_dump(include=set(ResponseOut.model_fields)))


@router.post("/evaluate", response_model=EvaluationOut)
async def evaluate(req: EvaluateReq) -> EvaluationOut:
    try:
        summary = await run_evaluation(req.session_id)
    except InterviewError as exc:
        raise _http_error(exc) from exc
    fields = set(EvaluationOut.model_fields) - {"failures"}
    return EvaluationOut(**summary.model_dump(include=fields), failures=summary.failures)


@router.get("/list", response_model=List[SessionOut])
def list_sessions(status: Optional[SessionStatus] = None) -> List[SessionOut]:
    return [_session_out(record) for record in lifecycle.sessions(status)]


@router.get("/candidate/{candidate_id}/active", response_model=Optional[SessionOut])
def active(candidate_id: str) -> Optional[SessionOut]:
    record = lifecycle.active_session_for(candidate_id)
    return _session_out(record) if record else None


@router.get("/{session_id}/questions", response_model=List[QuestionOut])
def questions(session_id: str) -> List[QuestionOut]:
    try:
        records = lifecycle.questions_for_session(session_id)
    except InterviewError as exc:
        raise _http_error(exc) from exc
    return [QuestionOut(**record.model_dump(include=set(QuestionOut.model_fields))) for record in records]


@router.get("/report/{session_id}", response_model=SessionReport)
def report(session_id: str) -> SessionReport:
    try:
        return get_report(session_id)
    except InterviewError as exc:
        raise _http_error(exc) from exc


@router.get("/report/{session_id}/pdf")
def report_pdf(session_id: str) -> Response:
    try:
        payload = render_report_pdf(get_report(session_id))
    except InterviewError as exc:
        raise _http_error(exc) from exc
    return Response(
        content=payload,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="interview-{session_id}.pdf"'},
    )


@catalog_router.get("/questions/techstacks", response_model=TechStacksOut)
def tech_stacks() -> TechStacksOut:
    return TechStacksOut(tech_stacks=lifecycle.tech_stacks())


@catalog_router.get("/users/candidates", response_model=List[CandidateOut])
def candidates() -> List[CandidateOut]:
    return [CandidateOut(candidate_id=c.candidate_id, username=c.username) for c in lifecycle.candidates()]

"""Evaluation pipeline: transcribe and score every response of a completed session.

Each response runs its own ``transcribe -> score -> persist`` chain. Chains
run concurrently under a semaphore and fail independently; the session is
moved to ``evaluated`` only after every chain has resolved.
"""
from __future__ import annotations

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from config.registry import SCORER_KEY, TRANSCRIBER_KEY, get_model
from config.settings import settings
from engines.scoring import Verdict, parse_verdict
from observability import log_event, span
from services.errors import (
    EngineError,
    EvaluationCancelled,
    NoResponses,
    SessionNotFound,
    SessionNotReady,
)
from services.lifecycle import mark_evaluated
from storage.models import ResponseRecord, SessionStatus
from storage.questions import find_question
from storage.responses import find_responses, update_response_evaluation, update_response_transcription
from storage.sessions import find_session

logger = logging.getLogger(__name__)

Transcriber = Callable[[str], Awaitable[str]]
Scorer = Callable[[str, str], Awaitable[Union[Verdict, str]]]

# Evaluated sessions may be re-run to retry unresolved responses.
RUNNABLE_STATUSES = (SessionStatus.COMPLETED, SessionStatus.EVALUATED)

Outcome = Literal["evaluated", "skipped", "missing_question", "unresolved", "failed", "cancelled"]

# Per-loop run claims: session_id -> [lock, holders].
_RUN_CLAIMS: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[str, List[Any]]]" = (
    weakref.WeakKeyDictionary()
)


class _ChainCancelled(Exception):
    """The cancel token fired while an engine call was in flight."""


class ResponseOutcome(BaseModel):
    response_id: str
    question_id: str
    outcome: Outcome
    reason: Optional[str] = None
    score: Optional[int] = None
    timings: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def attempted(self) -> bool:
        return self.outcome in ("evaluated", "unresolved", "failed")


class EvaluationSummary(BaseModel):
    session_id: str
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    missing_questions: int = 0
    unresolved: int = 0
    cancelled: int = 0
    outcomes: List[ResponseOutcome] = Field(default_factory=list)

    @property
    def failures(self) -> List[ResponseOutcome]:
        return [item for item in self.outcomes if item.outcome in ("failed", "unresolved")]

    @classmethod
    def from_outcomes(cls, session_id: str, outcomes: List[ResponseOutcome]) -> "EvaluationSummary":
        summary = cls(session_id=session_id, outcomes=outcomes)
        for item in outcomes:
            if item.attempted:
                summary.attempted += 1
            if item.outcome == "evaluated":
                summary.succeeded += 1
            elif item.outcome in ("failed", "unresolved"):
                summary.failed += 1
                if item.outcome == "unresolved":
                    summary.unresolved += 1
            elif item.outcome == "skipped":
                summary.skipped += 1
            elif item.outcome == "missing_question":
                summary.missing_questions += 1
            elif item.outcome == "cancelled":
                summary.cancelled += 1
        return summary


def _as_verdict(reply: Union[Verdict, str]) -> Verdict:
    if isinstance(reply, Verdict):
        return reply
    return parse_verdict(str(reply or ""))


class _Chain:
    """One response's evaluation run."""

    def __init__(
        self,
        response: ResponseRecord,
        *,
        transcriber: Transcriber,
        scorer: Scorer,
        semaphore: asyncio.Semaphore,
        cancel: Optional[asyncio.Event],
    ) -> None:
        self.response = response
        self.transcriber = transcriber
        self.scorer = scorer
        self.semaphore = semaphore
        self.cancel = cancel
        self.timings: List[Dict[str, Any]] = []

    def _outcome(self, outcome: Outcome, *, reason: Optional[str] = None, score: Optional[int] = None) -> ResponseOutcome:
        return ResponseOutcome(
            response_id=self.response.response_id,
            question_id=self.response.question_id,
            outcome=outcome,
            reason=reason,
            score=score,
            timings=self.timings,
        )

    def _cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    async def _engine_call(self, call: Awaitable[Any], timeout: float) -> Any:
        """Await an engine call bounded by ``timeout`` and abandon it once the cancel token fires."""

        if self.cancel is None:
            return await asyncio.wait_for(call, timeout=timeout)
        engine = asyncio.ensure_future(asyncio.wait_for(call, timeout=timeout))
        stop = asyncio.ensure_future(self.cancel.wait())
        try:
            await asyncio.wait({engine, stop}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            engine.cancel()
            stop.cancel()
            raise
        stop.cancel()
        if not engine.done():
            engine.cancel()
            await asyncio.gather(engine, return_exceptions=True)
            raise _ChainCancelled()
        return engine.result()

    async def run(self) -> ResponseOutcome:
        response = self.response
        if response.is_evaluated:
            return self._outcome("skipped", reason="already evaluated")
        async with self.semaphore:
            if self._cancelled():
                return self._outcome("cancelled")
            try:
                return await self._evaluate()
            except _ChainCancelled:
                return self._outcome("cancelled", reason="cancelled during engine call")
            except asyncio.TimeoutError:
                return self._outcome("failed", reason=f"{self.timings[-1]['span'] if self.timings else 'engine'} timed out")
            except EngineError as exc:
                return self._outcome("failed", reason=exc.reason)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Unexpected error evaluating response %s", response.response_id)
                return self._outcome("failed", reason=f"unexpected error: {exc}")

    async def _evaluate(self) -> ResponseOutcome:
        response = self.response
        question = await asyncio.to_thread(find_question, response.question_id)
        if question is None:
            logger.error("Question %s not found for response %s", response.question_id, response.response_id)
            return self._outcome("missing_question", reason=f"question {response.question_id} not found")

        transcript = response.transcription
        reused = bool(transcript)
        if not reused:
            with span(self.timings, "transcription"):
                transcript = await self._engine_call(
                    self.transcriber(response.audio_path), settings.TRANSCRIBE_TIMEOUT_S
                )
            transcript = (transcript or "").strip()
            if not transcript:
                return self._outcome("failed", reason="transcription produced no text")

        with span(self.timings, "scoring"):
            reply = await self._engine_call(self.scorer(question.text, transcript), settings.SCORING_TIMEOUT_S)
        verdict = _as_verdict(reply)

        if self._cancelled():
            return self._outcome("cancelled")

        if not verdict.complete:
            if not reused:
                await asyncio.to_thread(update_response_transcription, response.response_id, transcript)
            missing = "score" if verdict.score is None else "justification"
            return self._outcome("unresolved", reason=f"scoring reply had no usable {missing}")

        with span(self.timings, "persist"):
            written = await asyncio.to_thread(
                update_response_evaluation,
                response.response_id,
                transcript,
                verdict.score,
                verdict.justification,
            )
        if not written:
            return self._outcome("skipped", reason="evaluated by a concurrent run")
        return self._outcome("evaluated", score=verdict.score)


@asynccontextmanager
async def _claim_run(session_id: str) -> AsyncIterator[None]:  # Serialize runs of one session on this loop
    claims = _RUN_CLAIMS.setdefault(asyncio.get_running_loop(), {})
    claim = claims.setdefault(session_id, [asyncio.Lock(), 0])
    claim[1] += 1
    try:
        if claim[0].locked():
            log_event("evaluation_waiting", session_id)
        async with claim[0]:
            yield
    finally:
        claim[1] -= 1
        if claim[1] == 0:
            claims.pop(session_id, None)


async def run_evaluation(
    session_id: str,
    *,
    transcriber: Optional[Transcriber] = None,
    scorer: Optional[Scorer] = None,
    cancel: Optional[asyncio.Event] = None,
    concurrency: Optional[int] = None,
) -> EvaluationSummary:
    """Evaluate every response of a completed session, then mark it evaluated.

    Re-running on an already evaluated session retries its unresolved
    responses and leaves the status as is. Runs of the same session on one
    event loop are serialized, so an overlapping run starts only after the
    first has finished and finds its responses already evaluated.

    Raises:
        SessionNotFound: Unknown session.
        SessionNotReady: The session is pending or in-progress.
        NoResponses: The session has no recorded responses.
        EvaluationCancelled: ``cancel`` was set before the batch finished.
        Conflict: The final status update lost a race twice.
    """

    async with _claim_run(session_id):
        return await _run_claimed(session_id, transcriber, scorer, cancel, concurrency)


async def _run_claimed(
    session_id: str,
    transcriber: Optional[Transcriber],
    scorer: Optional[Scorer],
    cancel: Optional[asyncio.Event],
    concurrency: Optional[int],
) -> EvaluationSummary:
    session = await asyncio.to_thread(find_session, session_id)
    if session is None:
        raise SessionNotFound(f"Session {session_id} not found")
    if session.status not in RUNNABLE_STATUSES:
        raise SessionNotReady(
            f"Interview must be completed before evaluation (is {session.status.value})",
            details={"status": session.status.value},
        )
    responses = await asyncio.to_thread(find_responses, session_id)
    if not responses:
        raise NoResponses(f"No responses found for session {session_id}")

    transcriber = transcriber or get_model(TRANSCRIBER_KEY)
    scorer = scorer or get_model(SCORER_KEY)
    semaphore = asyncio.Semaphore(concurrency or settings.EVAL_CONCURRENCY)

    log_event("evaluation_started", session_id, responses=len(responses))
    chains = [
        _Chain(response, transcriber=transcriber, scorer=scorer, semaphore=semaphore, cancel=cancel)
        for response in responses
    ]
    outcomes = list(await asyncio.gather(*(chain.run() for chain in chains)))

    for item in outcomes:
        log_event(
            "response_outcome",
            session_id,
            level=logging.WARNING if item.outcome in ("failed", "unresolved", "missing_question") else logging.INFO,
            response_id=item.response_id,
            outcome=item.outcome,
            reason=item.reason,
            timings=item.timings,
        )

    summary = EvaluationSummary.from_outcomes(session_id, outcomes)
    if cancel is not None and cancel.is_set():
        log_event("evaluation_cancelled", session_id, attempted=summary.attempted, succeeded=summary.succeeded, failed=summary.failed)
        raise EvaluationCancelled(f"Evaluation of session {session_id} was cancelled", summary=summary)

    if session.status is SessionStatus.COMPLETED:
        await asyncio.to_thread(mark_evaluated, session_id)
    log_event(
        "evaluation_finished",
        session_id,
        attempted=summary.attempted,
        succeeded=summary.succeeded,
        failed=summary.failed,
        skipped=summary.skipped,
    )
    return summary


def evaluate_session(session_id: str, **kwargs: Any) -> EvaluationSummary:
    """Blocking wrapper around :func:`run_evaluation` for scripts and the CLI."""

    return asyncio.run(run_evaluation(session_id, **kwargs))


__all__ = [
    "EvaluationSummary",
    "ResponseOutcome",
    "Scorer",
    "Transcriber",
    "evaluate_session",
    "run_evaluation",
]

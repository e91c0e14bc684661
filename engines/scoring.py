from __future__ import annotations  # Answer scoring adapter over the LLM gateway

import re
from pathlib import Path
from textwrap import dedent
from typing import Optional

from pydantic import BaseModel, Field

from config import LlmRoute, load_route
from config.settings import settings
from llm_gateway import HttpClient, LlmGatewayError, complete
from services.errors import ScoringFailed

_SCORE = re.compile(r"Score:\s*\**\s*(\d+)", re.IGNORECASE)
_JUSTIFICATION = re.compile(r"Justification:\s*([\s\S]+)$", re.IGNORECASE)


class Verdict(BaseModel):  # Parsed scoring reply
    score: Optional[int] = None
    justification: Optional[str] = None
    raw: str = ""

    @property
    def complete(self) -> bool:
        return self.score is not None and bool(self.justification)


class ScoreRequest(BaseModel):  # Inputs for a single scoring call
    question: str = Field(min_length=1)
    transcript: str = Field(min_length=1)


def parse_verdict(raw: str) -> Verdict:  # Extract score and justification tokens
    score: Optional[int] = None
    justification: Optional[str] = None
    score_match = _SCORE.search(raw)
    if score_match:
        value = int(score_match.group(1))
        if 1 <= value <= 10:
            score = value
    justification_match = _JUSTIFICATION.search(raw)
    if justification_match:
        justification = justification_match.group(1).strip() or None
    return Verdict(score=score, justification=justification, raw=raw)


def build_prompt(request: ScoreRequest) -> str:  # Compose the scoring prompt
    return dedent(
        f"""
        [INST] You are an expert interviewer evaluating a candidate's response to a technical interview question.

        Question: "{request.question}"

        Candidate's Answer: "{request.transcript}"

        Evaluate the answer on a scale from 1 to 10, where 1 is completely incorrect and 10 is perfect.
        Provide a score and a detailed justification for your score.
        Format your response as:
        Score: [number between 1-10]
        Justification: [your detailed justification] [/INST]
        """
    ).strip()


def _strip_echo(prompt: str, reply: str) -> str:  # Text-generation endpoints may echo the prompt
    if reply.startswith(prompt):
        return reply[len(prompt):]
    marker = "[/INST]"
    if marker in reply:
        return reply.rsplit(marker, 1)[1]
    return reply


class LlmScorer:
    def __init__(self, route: LlmRoute, *, client: Optional[HttpClient] = None) -> None:
        self.route = route
        self.client = client

    @classmethod
    def from_config(cls, config_path: Optional[Path] = None) -> "LlmScorer":
        path = config_path or Path(settings.APP_CONFIG_PATH)
        return cls(load_route(path, settings.SCORING_TARGET))

    async def __call__(self, question: str, transcript: str) -> Verdict:
        prompt = build_prompt(ScoreRequest(question=question, transcript=transcript))
        try:
            reply = await complete(prompt, cfg=self.route, client=self.client)
        except LlmGatewayError as exc:
            reason = "scoring engine rate limited" if exc.rate_limited else f"scoring engine error: {exc}"
            raise ScoringFailed(reason) from exc
        text = _strip_echo(prompt, reply).strip()
        if not text:
            raise ScoringFailed("scoring engine returned an empty reply")
        return parse_verdict(text)


__all__ = ["LlmScorer", "ScoreRequest", "Verdict", "build_prompt", "parse_verdict"]

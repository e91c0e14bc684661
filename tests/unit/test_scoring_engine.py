import asyncio
from typing import Any, Dict, List

import httpx
import pytest

from config import LlmRoute
from engines.scoring import LlmScorer, ScoreRequest, build_prompt, parse_verdict
from services.errors import ScoringFailed


class _Response:
    def __init__(self, status_code: int, payload: Any) -> None:
        self.status_code = status_code
        self._payload = payload

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    @property
    def text(self) -> str:
        return str(self._payload)


class _Client:
    def __init__(self, response: Any) -> None:
        self.response = response
        self.requests: List[Dict[str, Any]] = []

    async def post(self, url: str, *, json: Dict[str, Any], headers: Dict[str, str], timeout: float) -> _Response:
        self.requests.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def _route(**overrides: Any) -> LlmRoute:
    data = {
        "name": "stub",
        "base_url": "http://llm.local",
        "endpoint": "/generate",
        "timeout_s": 5,
        "api_key_env": "STUB_LLM_KEY",
        "parameters": {"max_new_tokens": 64},
    }
    data.update(overrides)
    return LlmRoute(**data)


def _score(scorer: LlmScorer, question: str = "What is a hook?", transcript: str = "A function.") -> Any:
    return asyncio.run(scorer(question, transcript))


@pytest.mark.parametrize(
    "raw, score, justification",
    [
        ("Score: 8\nJustification: Solid answer.", 8, "Solid answer."),
        ("score: **7**\njustification:  Mostly right.\nMisses cleanup.", 7, "Mostly right.\nMisses cleanup."),
        ("Score: 0\nJustification: Nothing useful.", None, "Nothing useful."),
        ("Score: 11\nJustification: Too high.", None, "Too high."),
        ("Score: ten\nJustification: Wordy.", None, "Wordy."),
        ("Score: 6", 6, None),
        ("No format at all", None, None),
    ],
)
def test_parse_verdict(raw, score, justification):
    verdict = parse_verdict(raw)
    assert verdict.score == score
    assert verdict.justification == justification
    assert verdict.complete is (score is not None and justification is not None)
    assert verdict.raw == raw


def test_prompt_carries_question_and_transcript():
    prompt = build_prompt(ScoreRequest(question="Explain useEffect", transcript="It runs after render"))
    assert prompt.startswith("[INST]")
    assert prompt.endswith("[/INST]")
    assert '"Explain useEffect"' in prompt
    assert '"It runs after render"' in prompt
    assert "Score: [number between 1-10]" in prompt


def test_text_generation_route(monkeypatch):
    monkeypatch.setenv("STUB_LLM_KEY", "secret")
    client = _Client(_Response(200, [{"generated_text": "Score: 8\nJustification: Good coverage."}]))

    verdict = _score(LlmScorer(_route(), client=client))

    assert (verdict.score, verdict.justification) == (8, "Good coverage.")
    [request] = client.requests
    assert request["url"] == "http://llm.local/generate"
    assert request["headers"]["Authorization"] == "Bearer secret"
    assert request["json"]["parameters"] == {"max_new_tokens": 64}
    assert "What is a hook?" in request["json"]["inputs"]
    assert request["timeout"] == 5


def test_chat_completion_route():
    reply = {"choices": [{"message": {"content": "Score: 4\nJustification: Vague."}}]}
    client = _Client(_Response(200, reply))

    verdict = _score(LlmScorer(_route(model="mistral-small", parameters={"temperature": 0}), client=client))

    assert (verdict.score, verdict.justification) == (4, "Vague.")
    body = client.requests[0]["json"]
    assert body["model"] == "mistral-small"
    assert body["messages"][0]["role"] == "user"
    assert body["temperature"] == 0


def test_echoed_prompt_is_stripped():
    prompt = build_prompt(ScoreRequest(question="What is a hook?", transcript="A function."))
    client = _Client(_Response(200, [{"generated_text": prompt + "\nScore: 6\nJustification: Brief but right."}]))

    verdict = _score(LlmScorer(_route(), client=client))

    assert verdict.score == 6
    assert verdict.justification == "Brief but right."


def test_rate_limit_is_reported():
    client = _Client(_Response(429, {"error": "Rate limit reached"}))
    with pytest.raises(ScoringFailed) as info:
        _score(LlmScorer(_route(), client=client))
    assert info.value.reason == "scoring engine rate limited"


def test_server_error_and_transport_failure():
    with pytest.raises(ScoringFailed) as info:
        _score(LlmScorer(_route(), client=_Client(_Response(503, {"error": "loading"}))))
    assert "status 503" in info.value.reason

    with pytest.raises(ScoringFailed) as info:
        _score(LlmScorer(_route(), client=_Client(httpx.ConnectError("refused"))))
    assert "transport failed" in info.value.reason

    with pytest.raises(ScoringFailed):
        _score(LlmScorer(_route(), client=_Client(_Response(200, ValueError("not json")))))


def test_empty_reply_fails():
    client = _Client(_Response(200, [{"generated_text": "   "}]))
    with pytest.raises(ScoringFailed) as info:
        _score(LlmScorer(_route(), client=client))
    assert "empty" in info.value.reason


def test_from_config_uses_scoring_target(tmp_path):
    path = tmp_path / "app_config.json"
    path.write_text(
        '{"llm_routes": {"hf": {"name": "hf", "base_url": "http://hf", "endpoint": "/m", "timeout_s": 30}},'
        ' "registry": {"evaluation.score_response": "hf"}}'
    )
    scorer = LlmScorer.from_config(path)
    assert scorer.route.name == "hf"
    assert scorer.route.timeout_s == 30

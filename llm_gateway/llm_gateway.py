from __future__ import annotations  # LLM request gateway module

import asyncio
import logging
import os
import weakref
from typing import Any, Dict, Optional, Protocol

import httpx

from config import LlmRoute


logger = logging.getLogger(__name__)  # Module logger setup


_ROUTE_LOCKS: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[str, asyncio.Lock]]" = (
    weakref.WeakKeyDictionary()
)


class HttpClient(Protocol):  # Minimal async HTTP client protocol
    async def post(self, url: str, *, json: Dict[str, Any], headers: Dict[str, str], timeout: float) -> "HttpResponse": ...


class HttpResponse(Protocol):  # Minimal HTTP response protocol
    @property
    def status_code(self) -> int: ...

    def json(self) -> Any: ...

    @property
    def text(self) -> str: ...


class LlmGatewayError(RuntimeError):  # Base gateway error
    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def rate_limited(self) -> bool:
        return self.status_code == 429


def _lock_for(cfg: LlmRoute) -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    locks = _ROUTE_LOCKS.setdefault(loop, {})
    key = cfg.name or f"{cfg.base_url}{cfg.endpoint}"
    lock = locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        locks[key] = lock
    return lock


async def complete(
    prompt: str,
    *,
    cfg: LlmRoute,
    client: Optional[HttpClient] = None,
    options: Optional[Dict[str, Any]] = None,
) -> str:  # Send a prompt to the configured route and return the generated text
    if cfg.sequential:
        async with _lock_for(cfg):
            return await _execute(prompt, cfg, client, options)
    return await _execute(prompt, cfg, client, options)


async def _execute(
    prompt: str,
    cfg: LlmRoute,
    client: Optional[HttpClient],
    options: Optional[Dict[str, Any]],
) -> str:
    payload = _payload(prompt, cfg, options)
    headers = {"Content-Type": "application/json"}
    if cfg.api_key_env:
        api_key = os.getenv(cfg.api_key_env)
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
    headers.update(cfg.extra_headers)
    preview = _preview(prompt)
    logger.info("LLM request send route=%s model=%s preview=%s", cfg.name, cfg.model, preview)

    url = f"{cfg.base_url}{cfg.endpoint}"
    try:
        response = await _post(url, payload, headers, cfg.timeout_s, client)
    except httpx.TimeoutException as exc:
        logger.error("LLM request timed out route=%s: %s", cfg.name, exc)
        raise LlmGatewayError("LLM request timed out") from exc
    except httpx.HTTPError as exc:
        logger.error("LLM transport failure route=%s: %s", cfg.name, exc)
        raise LlmGatewayError("LLM transport failed") from exc
    if response.status_code >= 400:
        logger.error("LLM error status route=%s status=%s", cfg.name, response.status_code)
        raise LlmGatewayError(f"LLM returned status {response.status_code}", status_code=response.status_code)
    try:
        data = response.json()
    except ValueError as exc:
        logger.error("Invalid JSON payload from LLM: %s", exc)
        raise LlmGatewayError("LLM payload was not JSON") from exc
    content = _extract_content(data)
    logger.info("LLM request done route=%s model=%s chars=%d", cfg.name, cfg.model, len(content))
    return content


def _payload(prompt: str, cfg: LlmRoute, options: Optional[Dict[str, Any]]) -> Dict[str, Any]:  # Build request body
    if cfg.model:
        # OpenAI-compatible chat completion endpoint
        payload: Dict[str, Any] = {"model": cfg.model, "messages": [{"role": "user", "content": prompt}]}
        payload.update(cfg.parameters)
    else:
        # Hosted text-generation endpoint
        payload = {"inputs": prompt}
        if cfg.parameters:
            payload["parameters"] = dict(cfg.parameters)
    if options:
        payload.update(options)
    return payload


async def _post(
    url: str,
    payload: Dict[str, Any],
    headers: Dict[str, str],
    timeout: float,
    client: Optional[HttpClient],
) -> HttpResponse:  # Dispatch HTTP request
    if client is not None:
        return await client.post(url, json=payload, headers=headers, timeout=timeout)
    async with httpx.AsyncClient(timeout=timeout) as http_client:
        return await http_client.post(url, json=payload, headers=headers)


def _preview(prompt: str) -> str:  # Build preview string for logging
    for line in prompt.splitlines():
        text = line.strip()
        if text:
            return text if len(text) <= 120 else text[:117] + "..."
    return ""


def _extract_content(data: Any) -> str:  # Extract generated text from the LLM response
    if isinstance(data, list) and data:
        first = data[0]
        if isinstance(first, dict) and isinstance(first.get("generated_text"), str):
            return first["generated_text"]
    if isinstance(data, dict):
        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            message = choices[0].get("message") if isinstance(choices[0], dict) else None
            content = message.get("content") if isinstance(message, dict) else None
            if isinstance(content, str):
                return content
        for key in ("generated_text", "content"):
            if isinstance(data.get(key), str):
                return data[key]
    raise LlmGatewayError("LLM response missing content")

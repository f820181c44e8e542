"""
LiteLLM client wrapper: one round-trip per call, request/response normalization, timeouts.
Retries live in insight_pipeline.llm.policies, so LiteLLM's own retries are disabled here.
Exception mapping (LiteLLM -> LLMError):
  - Timeout / APITimeoutError -> LLMTimeout (transient)
  - status 429 / RateLimitError -> LLMRateLimited (transient)
  - status 5xx / ServiceUnavailableError / InternalServerError / APIConnectionError -> LLMUnavailable (transient)
  - status 401, 403 / AuthenticationError / PermissionDeniedError -> LLMAuthError (fatal)
  - status 400, 404, 422 / BadRequestError / NotFoundError -> LLMBadRequest (fatal)
  - empty message content -> LLMEmptyResponse (transient)
  - unknown -> LLMError(UNKNOWN, retryable=False)
"""
from __future__ import annotations

import time
from typing import Any

from litellm import acompletion

from insight_pipeline.llm.errors import (
    LLMAuthError,
    LLMBadRequest,
    LLMEmptyResponse,
    LLMError,
    LLMRateLimited,
    LLMTimeout,
    LLMUnavailable,
)
from insight_pipeline.llm.telemetry import emit_error_metric, emit_latency_metric, emit_tokens_metric
from insight_pipeline.llm.types import LLMRequest, LLMResponse, LLMUsage

_TIMEOUT_NAMES = ("APITimeoutError", "Timeout", "TimeoutError", "ReadTimeout", "ConnectTimeout")
_AUTH_NAMES = ("AuthenticationError", "PermissionDeniedError")
_BAD_REQUEST_NAMES = (
    "BadRequestError",
    "InvalidRequestError",
    "NotFoundError",
    "UnprocessableEntityError",
    "ContextWindowExceededError",
)
_UNAVAILABLE_NAMES = (
    "ServiceUnavailableError",
    "InternalServerError",
    "APIConnectionError",
    "APIError",
)


def _map_exception(e: Exception) -> LLMError:
    """Map LiteLLM/HTTP exceptions to LLMError. Uses class name so it works across import paths."""
    if isinstance(e, LLMError):
        return e
    exc_name = type(e).__name__
    if exc_name in _TIMEOUT_NAMES:
        return LLMTimeout(details=exc_name)
    status = getattr(e, "status_code", None)
    if isinstance(status, int):
        if status == 429:
            return LLMRateLimited(str(e), status_code=status, details=exc_name)
        if status >= 500:
            return LLMUnavailable(str(e), status_code=status, details=exc_name)
        if status in (401, 403):
            return LLMAuthError(str(e), status_code=status, details=exc_name)
        if status in (400, 404, 422):
            return LLMBadRequest(str(e), status_code=status, details=exc_name)
    if exc_name == "RateLimitError":
        return LLMRateLimited(str(e), details=exc_name)
    if exc_name in _AUTH_NAMES:
        return LLMAuthError(str(e), details=exc_name)
    if exc_name in _BAD_REQUEST_NAMES:
        return LLMBadRequest(str(e), details=exc_name)
    if exc_name in _UNAVAILABLE_NAMES:
        return LLMUnavailable(str(e), details=exc_name)
    return LLMError(str(e), code="UNKNOWN", retryable=False, status_code=status, details=exc_name)


def _request_to_kwargs(req: LLMRequest, model: str, timeout_s: float) -> dict[str, Any]:
    """Build LiteLLM completion kwargs: model, temperature, messages."""
    return {
        "model": model,
        "messages": [m.model_dump() for m in req.messages],
        "temperature": req.temperature,
        "timeout": timeout_s,
        "num_retries": 0,
        "max_retries": 0,
    }


def _int_field(obj: Any, *names: str) -> int:
    for name in names:
        value = obj.get(name) if isinstance(obj, dict) else getattr(obj, name, None)
        if isinstance(value, int) and value:
            return value
    return 0


def _usage_from_completion(raw: Any) -> LLMUsage | None:
    u = raw.get("usage") if isinstance(raw, dict) else getattr(raw, "usage", None)
    if not u:
        return None
    input_tokens = _int_field(u, "prompt_tokens", "input_tokens")
    output_tokens = _int_field(u, "completion_tokens", "output_tokens")
    return LLMUsage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=_int_field(u, "total_tokens") or input_tokens + output_tokens,
    )


def _response_from_completion(raw: Any, model: str, latency_ms: int) -> LLMResponse:
    """Build LLMResponse from a LiteLLM response. Raises LLMEmptyResponse when content is missing."""
    text = ""
    finish_reason = None
    choices = raw.get("choices") if isinstance(raw, dict) else getattr(raw, "choices", None)
    if choices:
        c0 = choices[0]
        msg = c0.get("message") if isinstance(c0, dict) else getattr(c0, "message", None)
        if msg is not None:
            text = (msg.get("content") if isinstance(msg, dict) else getattr(msg, "content", None)) or ""
        finish_reason = c0.get("finish_reason") if isinstance(c0, dict) else getattr(c0, "finish_reason", None)
    if not text.strip():
        raise LLMEmptyResponse(details=f"finish_reason={finish_reason}")
    return LLMResponse(
        text=text,
        model=model,
        latency_ms=latency_ms,
        usage=_usage_from_completion(raw),
        finish_reason=finish_reason,
    )


class LiteLLMClient:
    """Async LiteLLM wrapper for OpenRouter: one POST per call, bearer key, fixed timeout."""

    def __init__(self, *, api_base: str | None = None, default_timeout_s: float = 90.0) -> None:
        self._api_base = api_base
        self._default_timeout_s = default_timeout_s

    async def acompletion(
        self,
        model: str,
        req: LLMRequest,
        *,
        timeout_s: float | None = None,
        api_key: str | None = None,
    ) -> LLMResponse:
        """Execute one completion. Raises LLMError on failure."""
        timeout = timeout_s if timeout_s is not None else req.timeout_s or self._default_timeout_s
        kwargs = _request_to_kwargs(req, model, timeout)
        if self._api_base is not None:
            kwargs["api_base"] = self._api_base
        if api_key is not None:
            kwargs["api_key"] = api_key

        t0 = time.perf_counter()
        try:
            raw = await acompletion(**kwargs)
        except Exception as e:  # noqa: BLE001
            err = _map_exception(e)
            emit_error_metric(model, err.code)
            raise err from e
        latency_ms = int((time.perf_counter() - t0) * 1000)
        try:
            resp = _response_from_completion(raw, model, latency_ms)
        except LLMError as err:
            emit_error_metric(model, err.code)
            raise
        emit_latency_metric(model, float(latency_ms))
        if resp.usage:
            emit_tokens_metric(model, "in", resp.usage.input_tokens)
            emit_tokens_metric(model, "out", resp.usage.output_tokens)
        return resp

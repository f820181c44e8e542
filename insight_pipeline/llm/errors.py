"""Error taxonomy for the LLM module. Stable codes drive retry decisions and failure records."""
from __future__ import annotations

from insight_pipeline.llm.types import Failure


class LLMError(Exception):
    """Base for all LLM errors. code is stable; details must not leak secrets."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "UNKNOWN",
        retryable: bool = False,
        status_code: int | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.retryable = retryable
        self.status_code = status_code
        self.details = details or ""


class LLMMissingCredentials(LLMError):
    """No API key configured. Fatal to the whole run; checked before any attempt."""

    def __init__(self, message: str = "OPENROUTER_API_KEY is not set", **kwargs: object) -> None:
        super().__init__(message, code="MISSING_CREDENTIALS", retryable=False, **kwargs)


class LLMTimeout(LLMError):
    """Round-trip exceeded its timeout."""

    def __init__(self, message: str = "LLM request timed out", **kwargs: object) -> None:
        super().__init__(message, code="TIMEOUT", retryable=True, **kwargs)


class LLMRateLimited(LLMError):
    """Rate limit (429)."""

    def __init__(self, message: str = "LLM rate limited", **kwargs: object) -> None:
        super().__init__(message, code="RATE_LIMITED", retryable=True, **kwargs)


class LLMUnavailable(LLMError):
    """Service unavailable (5xx, connection, etc.)."""

    def __init__(self, message: str = "LLM unavailable", **kwargs: object) -> None:
        super().__init__(message, code="UNAVAILABLE", retryable=True, **kwargs)


class LLMEmptyResponse(LLMError):
    """Endpoint answered without any message content. Retried like a 5xx."""

    def __init__(self, message: str = "Model returned empty content", **kwargs: object) -> None:
        super().__init__(message, code="EMPTY_RESPONSE", retryable=True, **kwargs)


class LLMBadRequest(LLMError):
    """Malformed request (400, unknown model, etc.)."""

    def __init__(self, message: str = "LLM bad request", **kwargs: object) -> None:
        super().__init__(message, code="BAD_REQUEST", retryable=False, **kwargs)


class LLMAuthError(LLMError):
    """Authentication or authorization failure."""

    def __init__(self, message: str = "LLM auth error", **kwargs: object) -> None:
        super().__init__(message, code="AUTH_ERROR", retryable=False, **kwargs)


class LLMTransientExhausted(LLMError):
    """Every attempt of the transient budget failed."""

    def __init__(self, last_error: LLMError, attempts: int) -> None:
        super().__init__(
            f"{attempts} attempts failed; last error: {last_error}",
            code="TRANSIENT_EXHAUSTED",
            retryable=False,
            status_code=last_error.status_code,
            details=last_error.code,
        )
        self.last_error = last_error
        self.attempts = attempts


class LLMSchemaValidationExhausted(LLMError):
    """Response still failed schema validation after the repair round-trip."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__(
            "Schema validation failed after repair: " + "; ".join(errors),
            code="SCHEMA_VALIDATION_EXHAUSTED",
            retryable=False,
        )
        self.errors = errors


class LLMInvocationFailed(LLMError):
    """Raised by single-call flows when the invocation ends in a Failure outcome."""

    def __init__(self, failure: Failure) -> None:
        super().__init__(
            f"LLM call failed after {failure.attempts} attempt(s): {failure.describe()}",
            code=failure.reason.value,
            retryable=False,
        )
        self.failure = failure

"""
LLM module: one resilient, schema-validating completion call per task.
Public API: Invoker, LLMSettings, LLMMessage, Outcome (Success | Failure), validate_payload.
Other modules must not call LiteLLM directly.
"""
from insight_pipeline.llm.errors import (
    LLMAuthError,
    LLMBadRequest,
    LLMEmptyResponse,
    LLMError,
    LLMInvocationFailed,
    LLMMissingCredentials,
    LLMRateLimited,
    LLMSchemaValidationExhausted,
    LLMTimeout,
    LLMTransientExhausted,
    LLMUnavailable,
)
from insight_pipeline.llm.invoker import Invoker
from insight_pipeline.llm.settings import LLMSettings, normalize_model_id
from insight_pipeline.llm.types import (
    Failure,
    FailureReason,
    LLMMessage,
    LLMRequest,
    LLMResponse,
    LLMUsage,
    Outcome,
    Success,
    UsageRecord,
)
from insight_pipeline.llm.validation import ValidationResult, extract_first_object, validate_payload

__all__ = [
    "Invoker",
    "LLMSettings",
    "normalize_model_id",
    "LLMMessage",
    "LLMRequest",
    "LLMResponse",
    "LLMUsage",
    "UsageRecord",
    "Outcome",
    "Success",
    "Failure",
    "FailureReason",
    "ValidationResult",
    "extract_first_object",
    "validate_payload",
    "LLMError",
    "LLMMissingCredentials",
    "LLMTimeout",
    "LLMRateLimited",
    "LLMUnavailable",
    "LLMEmptyResponse",
    "LLMBadRequest",
    "LLMAuthError",
    "LLMTransientExhausted",
    "LLMSchemaValidationExhausted",
    "LLMInvocationFailed",
]

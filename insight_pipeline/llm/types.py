"""Typed request/response, usage and outcome models for the LLM module (Pydantic v2)."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class LLMMessage(BaseModel):
    """Single conversation turn in OpenAI-style format."""

    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str


class LLMRequest(BaseModel):
    """Request for a single chat completion round-trip."""

    messages: list[LLMMessage]
    temperature: float = 0.0
    timeout_s: float | None = None


class LLMUsage(BaseModel):
    """Token usage reported by the endpoint."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class LLMResponse(BaseModel):
    """Normalized response of one round-trip."""

    text: str
    model: str
    latency_ms: int
    usage: LLMUsage | None = None
    finish_reason: str | None = None


class UsageRecord(BaseModel):
    """One line of the usage stream. Written once, never re-read."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    success: Literal[True] = True


class FailureReason(str, Enum):
    """Terminal failure reasons of a Task."""

    TRANSIENT_EXHAUSTED = "TransientExhausted"
    SCHEMA_VALIDATION_EXHAUSTED = "SchemaValidationExhausted"
    FATAL_REQUEST_ERROR = "FatalRequestError"
    UNEXPECTED_ERROR = "UnexpectedError"


@dataclass(frozen=True)
class Success:
    payload: Any
    attempts: int = 1
    usage: LLMUsage | None = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    reason: FailureReason
    last_error_message: str
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return False

    def describe(self) -> str:
        """Human-readable reason naming the exhausted retry/validation path."""
        return f"{self.reason.value}: {self.last_error_message}"


Outcome = Success | Failure

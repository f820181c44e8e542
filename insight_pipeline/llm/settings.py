"""LLM module configuration. Env prefix: LLM_. API key: OPENROUTER_API_KEY or LLM_OPENROUTER_API_KEY."""
from __future__ import annotations

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

OPENROUTER_PREFIX = "openrouter/"

# Config files carry the dashed alias; OpenRouter only knows the dotted name.
_MODEL_ALIASES = {"claude-3-5-sonnet": "claude-3.5-sonnet"}


def normalize_model_id(model_id: str) -> str:
    """Return a LiteLLM model id routed through OpenRouter (``openrouter/<vendor>/<model>``)."""
    normalized = (model_id or "").strip()
    if not normalized:
        raise ValueError("model id must be non-empty")
    if normalized.startswith(OPENROUTER_PREFIX):
        normalized = normalized[len(OPENROUTER_PREFIX):]
    for alias, canonical in _MODEL_ALIASES.items():
        normalized = normalized.replace(alias, canonical)
    return OPENROUTER_PREFIX + normalized


class LLMSettings(BaseSettings):
    """Settings for the invoker, client and usage telemetry. All overridable via LLM_* env vars."""

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    openrouter_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("OPENROUTER_API_KEY", "LLM_OPENROUTER_API_KEY", "openrouter_api_key"),
        description="Bearer credential for the completion endpoint",
    )
    api_base: str = Field(default="https://openrouter.ai/api/v1", description="Completion endpoint base URL")
    default_model: str = Field(
        default="openrouter/anthropic/claude-3-haiku",
        description="Model used when the caller does not pick one",
    )
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    timeout_s: float = Field(default=90.0, gt=0, description="Upper bound for one network round-trip")
    max_attempts: int = Field(default=3, ge=1, description="Network attempts per task for transient failures")
    backoff_schedule_s: list[float] = Field(
        default=[2.0, 4.0, 8.0],
        description="Wait after the failure of attempt k is backoff_schedule_s[k-1]",
    )
    usage_logging_enabled: bool = Field(default=True, description="Append usage records for successful calls")
    usage_log_path: str = Field(default="logs/llm_usage.jsonl", description="Usage stream (JSONL)")

    @field_validator("backoff_schedule_s")
    @classmethod
    def backoff_non_negative(cls, v: list[float]) -> list[float]:
        if not v:
            raise ValueError("backoff_schedule_s must have at least one entry")
        if any(d < 0 for d in v):
            raise ValueError("backoff_schedule_s entries must be >= 0")
        return v

    @property
    def has_credentials(self) -> bool:
        return bool((self.openrouter_api_key or "").strip())

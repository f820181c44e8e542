"""Port interfaces for the LLM module. The invoker depends on these, not on implementations."""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from insight_pipeline.llm.types import LLMRequest, LLMResponse, UsageRecord


@runtime_checkable
class LLMClientPort(Protocol):
    """One network round-trip, no retries. Used by the invoker."""

    async def acompletion(
        self,
        model: str,
        req: LLMRequest,
        *,
        timeout_s: float | None = None,
        api_key: str | None = None,
    ) -> LLMResponse:
        """Execute one completion. Raises LLMError on failure (including empty content)."""
        ...


@runtime_checkable
class UsageRecorderPort(Protocol):
    """Best-effort usage sink. Implementations must never raise from record()."""

    def record(self, usage: UsageRecord) -> None:
        ...

    async def drain(self) -> None:
        ...

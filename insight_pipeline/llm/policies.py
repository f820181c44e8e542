"""
Retry policies for one task, composed by the invoker:
  - TransientRetryPolicy: bounded attempts with a fixed backoff schedule for retryable LLMErrors.
  - SchemaRepairPolicy: bounded extra round-trips (one by default) asking the model to fix its invalid output.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence, TypeVar

from insight_pipeline.llm.errors import LLMError, LLMTransientExhausted
from insight_pipeline.llm.types import LLMMessage

logger = logging.getLogger(__name__)

T = TypeVar("T")
SleepFn = Callable[[float], Awaitable[None]]
# send(attempt) -> result; attempt is the 1-based slot number or REPAIR_ATTEMPT
SendFn = Callable[[int | str], Awaitable[T]]

DEFAULT_BACKOFF_SCHEDULE_S: tuple[float, ...] = (2.0, 4.0, 8.0)
REPAIR_ATTEMPT = "repair"

REPAIR_INSTRUCTION = (
    "You output invalid JSON. Fix it and return ONLY valid JSON that matches the required schema. "
    "Validation errors: {errors}"
)


@dataclass
class AttemptBudget:
    """Per-task count of transient-retry slots and of network round-trips. Not shared between tasks."""

    max_attempts: int = 3
    used: int = 0
    round_trips: int = 0

    @property
    def exhausted(self) -> bool:
        return self.used >= self.max_attempts

    def consume(self) -> int:
        self.used += 1
        return self.used


class TransientRetryPolicy:
    """Run a round-trip until it succeeds, fails fatally, or the attempt budget is spent."""

    def __init__(
        self,
        *,
        max_attempts: int = 3,
        backoff_schedule_s: Sequence[float] = DEFAULT_BACKOFF_SCHEDULE_S,
        sleep: SleepFn | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self._schedule = tuple(backoff_schedule_s) or DEFAULT_BACKOFF_SCHEDULE_S
        self._sleep = sleep or asyncio.sleep

    def new_budget(self) -> AttemptBudget:
        return AttemptBudget(max_attempts=self.max_attempts)

    def backoff_for(self, failed_attempt: int) -> float:
        """Wait after the failure of attempt k (1-based); the last entry repeats."""
        idx = min(max(failed_attempt, 1), len(self._schedule)) - 1
        return self._schedule[idx]

    async def run(
        self,
        send: SendFn[T],
        budget: AttemptBudget,
        *,
        free_first_attempt: bool = False,
    ) -> T:
        """
        Call send until success. Non-retryable errors propagate at once.
        With free_first_attempt the first call is labelled REPAIR_ATTEMPT and does not consume
        a slot; later retries of it draw from whatever the budget has left.
        """
        free = free_first_attempt
        attempt: int | str
        while True:
            if free:
                attempt = REPAIR_ATTEMPT
            else:
                if budget.exhausted:
                    raise LLMTransientExhausted(LLMError("no attempts left", code="NO_ATTEMPTS"), budget.used)
                attempt = budget.consume()
            free = False
            budget.round_trips += 1
            try:
                return await send(attempt)
            except LLMError as e:
                if not e.retryable:
                    raise
                if budget.exhausted:
                    raise LLMTransientExhausted(e, budget.used) from e
                delay = self.backoff_for(budget.used)
                logger.info(
                    "transient failure (%s) on attempt %s/%s; retrying in %.1fs",
                    e.code,
                    attempt,
                    budget.max_attempts,
                    delay,
                )
                await self._sleep(delay)


class SchemaRepairPolicy:
    """Bounded repair allowance: replay the conversation with the invalid output and a correction."""

    def __init__(self, *, max_repairs: int = 1, instruction: str = REPAIR_INSTRUCTION) -> None:
        if max_repairs < 0:
            raise ValueError("max_repairs must be >= 0")
        self.max_repairs = max_repairs
        self._instruction = instruction

    def build_repair_messages(
        self,
        messages: Sequence[LLMMessage],
        invalid_output: str,
        errors: Sequence[str],
    ) -> list[LLMMessage]:
        return [
            *messages,
            LLMMessage(role="assistant", content=invalid_output),
            LLMMessage(role="user", content=self._instruction.format(errors="; ".join(errors))),
        ]

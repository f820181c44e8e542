"""
Scheduler: fan out independent tasks under a concurrency ceiling and stream (task, outcome)
pairs as they complete.

The ceiling is a semaphore shared by all tasks of one run and held by the invoker only for
the duration of a network round-trip, so a task sleeping in backoff never occupies a slot.
"""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Iterable

from insight_pipeline.llm.errors import LLMMissingCredentials
from insight_pipeline.llm.invoker import Invoker
from insight_pipeline.llm.types import Failure, FailureReason, Outcome
from insight_pipeline.pipeline.models import Task

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5


def validate_concurrency(limit: object) -> int:
    """Return limit if it is a positive int; raise ValueError otherwise."""
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValueError(f"concurrency_limit must be a positive integer, got {limit!r}")
    return limit


class Scheduler:
    """Runs tasks through the invoker; one task's outcome never blocks or cancels another."""

    def __init__(self, invoker: Invoker, *, model: str | None = None) -> None:
        self._invoker = invoker
        self._model = model

    async def _run_one(self, task: Task, gate: asyncio.Semaphore) -> tuple[Task, Outcome]:
        try:
            outcome = await self._invoker.invoke(
                self._model,
                task.messages,
                task.output_schema,
                gate=gate,
                task_id=task.task_id,
            )
        except LLMMissingCredentials:
            raise
        except Exception as e:  # noqa: BLE001
            logger.exception("task %s crashed", task.task_id)
            outcome = Failure(
                reason=FailureReason.UNEXPECTED_ERROR,
                last_error_message=f"{type(e).__name__}: {e}",
            )
        if isinstance(outcome, Failure):
            logger.warning("task %s failed: %s", task.task_id, outcome.describe())
        else:
            logger.debug("task %s succeeded after %s round-trip(s)", task.task_id, outcome.attempts)
        return task, outcome

    async def run(
        self,
        tasks: Iterable[Task],
        concurrency_limit: int = DEFAULT_CONCURRENCY,
    ) -> AsyncIterator[tuple[Task, Outcome]]:
        """
        Yield (task, outcome) in completion order. Raises LLMMissingCredentials before any
        task starts. Closing the iterator early cancels the tasks that are still running.
        """
        limit = validate_concurrency(concurrency_limit)
        self._invoker.ensure_credentials()
        gate = asyncio.Semaphore(limit)
        pending: set[asyncio.Task[tuple[Task, Outcome]]] = {
            asyncio.ensure_future(self._run_one(task, gate)) for task in tasks
        }
        logger.info("scheduled %d tasks (concurrency=%d)", len(pending), limit)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for fut in done:
                    yield fut.result()
        finally:
            for fut in pending:
                fut.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

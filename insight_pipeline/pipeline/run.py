"""Bulk extraction run: tasks -> scheduler -> sink, with an explicit success/failure summary."""
from __future__ import annotations

import contextlib
import logging
from typing import Sequence

from insight_pipeline.llm.invoker import Invoker
from insight_pipeline.pipeline.models import RunSummary, Task
from insight_pipeline.pipeline.scheduler import DEFAULT_CONCURRENCY, Scheduler, validate_concurrency
from insight_pipeline.pipeline.sink import JsonlResultSink

logger = logging.getLogger(__name__)


async def run_extraction(
    tasks: Sequence[Task],
    *,
    invoker: Invoker,
    sink: JsonlResultSink,
    model: str | None = None,
    concurrency_limit: int = DEFAULT_CONCURRENCY,
) -> RunSummary:
    """
    Process every task to completion and record each outcome as it arrives.
    Raises LLMMissingCredentials before anything is written, SinkWriteError if a stream
    cannot be written. Per-task failures only show up in the summary counts.
    """
    limit = validate_concurrency(concurrency_limit)
    invoker.ensure_credentials()
    sink.open()

    scheduler = Scheduler(invoker, model=model)
    try:
        async with contextlib.aclosing(scheduler.run(tasks, limit)) as completions:
            async for task, outcome in completions:
                await sink.record(task, outcome)
    finally:
        await invoker.usage_recorder.drain()

    summary = RunSummary(
        total=len(tasks),
        succeeded=sink.succeeded,
        failed=sink.failed,
        success_path=sink.success_path,
        failure_path=sink.failure_path,
        failures_by_reason=dict(sink.failures_by_reason),
    )
    logger.info(
        "extraction finished: total=%d succeeded=%d failed=%d",
        summary.total,
        summary.succeeded,
        summary.failed,
    )
    return summary

"""
Result sink: one self-contained JSON line per task outcome, appended as soon as it arrives.
Success and failure streams are append-only; a crash after K writes loses none of them.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from insight_pipeline.llm.types import Failure, Outcome, Success
from insight_pipeline.pipeline.errors import SinkWriteError
from insight_pipeline.pipeline.models import Task

logger = logging.getLogger(__name__)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _payload_fields(payload: Any) -> dict[str, Any]:
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json")
    if isinstance(payload, dict):
        return dict(payload)
    return {"text": payload}


class _AppendStream:
    """Append-only JSONL file; one lock per stream, one open/append/fsync per line."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()

    def ensure(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # "a" creates the file if missing and never truncates an existing one.
        with open(self.path, "a", encoding="utf-8"):
            pass

    def append(self, record: dict[str, Any]) -> None:
        line = json.dumps(record, ensure_ascii=False)
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
                f.flush()
                os.fsync(f.fileno())


class JsonlResultSink:
    """Records (task, outcome) pairs to a success stream and a failure stream."""

    def __init__(self, success_path: str | Path, failure_path: str | Path, *, id_field: str = "task_id") -> None:
        self._success = _AppendStream(Path(success_path))
        self._failure = _AppendStream(Path(failure_path))
        self._id_field = id_field
        self.succeeded = 0
        self.failed = 0
        self.failures_by_reason: dict[str, int] = {}
        self._counts_lock = threading.Lock()

    @property
    def success_path(self) -> Path:
        return self._success.path

    @property
    def failure_path(self) -> Path:
        return self._failure.path

    def open(self) -> None:
        """Create parent directories and both files. Idempotent."""
        try:
            self._success.ensure()
            self._failure.ensure()
        except OSError as e:
            raise SinkWriteError(f"Cannot create output streams: {e}") from e

    def success_record(self, task: Task, outcome: Success) -> dict[str, Any]:
        record = {self._id_field: task.task_id}
        record.update(_payload_fields(outcome.payload))
        return record

    def failure_record(self, task: Task, outcome: Failure) -> dict[str, Any]:
        return {"timestamp": _utc_now_iso(), "task_id": task.task_id, "error": outcome.describe()}

    def write(self, task: Task, outcome: Outcome) -> None:
        """Append one line synchronously. Raises SinkWriteError."""
        try:
            if isinstance(outcome, Success):
                self._success.append(self.success_record(task, outcome))
                with self._counts_lock:
                    self.succeeded += 1
            else:
                self._failure.append(self.failure_record(task, outcome))
                key = outcome.reason.value
                with self._counts_lock:
                    self.failed += 1
                    self.failures_by_reason[key] = self.failures_by_reason.get(key, 0) + 1
        except OSError as e:
            raise SinkWriteError(f"Cannot append result for task {task.task_id}: {e}") from e

    async def record(self, task: Task, outcome: Outcome) -> None:
        """Append one line off the event loop thread."""
        await asyncio.to_thread(self.write, task, outcome)

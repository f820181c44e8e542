"""Observability: redaction, structured logging, metrics, and the best-effort usage stream."""
from __future__ import annotations

import asyncio
import logging
import re
import threading
from pathlib import Path
from typing import Any

from insight_pipeline.llm.types import UsageRecord

logger = logging.getLogger(__name__)

# Redaction: patterns to mask (never log or store raw)
_SECRET_PATTERNS = [
    re.compile(r"\b(?:sk-[a-zA-Z0-9-]{20,})\b", re.IGNORECASE),  # OpenAI/OpenRouter-style
    re.compile(r"\bBearer\s+[a-zA-Z0-9_.-]+\b", re.IGNORECASE),
]
_PII_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b")  # email
_PREVIEW_MAX_CHARS = 200


def redact_preview(text: str) -> str:
    """Redact secrets and PII, then truncate. Use for response previews in logs."""
    if not text:
        return ""
    out = text
    for pat in _SECRET_PATTERNS:
        out = pat.sub("[REDACTED]", out)
    out = _PII_PATTERN.sub("[EMAIL]", out)
    if len(out) > _PREVIEW_MAX_CHARS:
        out = out[:_PREVIEW_MAX_CHARS] + "..."
    return out


def log_llm_call(
    *,
    task_id: str | None = None,
    model: str,
    attempt: int | str,
    latency_ms: int,
    status: str,
    error_code: str | None = None,
) -> None:
    """Emit structured log for one round-trip. Never log prompt text or API keys."""
    extra: dict[str, Any] = {
        "model": model,
        "attempt": attempt,
        "latency_ms": latency_ms,
        "status": status,
    }
    if task_id is not None:
        extra["task_id"] = task_id
    if error_code is not None:
        extra["error_code"] = error_code
    logger.info("llm_call", extra=extra)


# Metrics: debug lines until a registry is wired in.
def emit_latency_metric(model: str, latency_ms: float) -> None:
    logger.debug("metric llm_latency_ms %s %s", model, latency_ms)


def emit_tokens_metric(model: str, kind: str, count: int) -> None:
    logger.debug("metric llm_tokens %s %s %s", model, kind, count)


def emit_error_metric(model: str, code: str) -> None:
    logger.debug("metric llm_errors %s %s", model, code)


class UsageRecorder:
    """
    Appends one JSON line per successful call to the usage stream.

    record() never blocks the caller and never raises: the write runs as a detached
    task (or inline when no loop is running) and OSErrors are logged and dropped.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def path(self) -> Path:
        return self._path

    def _append(self, line: str) -> None:
        try:
            with self._lock:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with open(self._path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
        except OSError as e:
            logger.warning("usage record not written to %s: %s", self._path, e)

    async def _append_async(self, line: str) -> None:
        await asyncio.to_thread(self._append, line)

    def record(self, usage: UsageRecord) -> None:
        try:
            line = usage.model_dump_json()
        except Exception as e:  # noqa: BLE001
            logger.warning("usage record not serializable: %s", e)
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._append(line)
            return
        task = loop.create_task(self._append_async(line))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for detached writes. Errors were already logged by _append."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


class NullUsageRecorder:
    """Usage sink used when usage logging is disabled."""

    def record(self, usage: UsageRecord) -> None:
        logger.debug("usage %s in=%s out=%s", usage.model, usage.input_tokens, usage.output_tokens)

    async def drain(self) -> None:
        return None

"""In-memory doubles for LLMClientPort and asyncio.sleep, for tests and dry runs. No network."""
from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Callable, Sequence, Union

from insight_pipeline.llm.errors import LLMError
from insight_pipeline.llm.types import LLMRequest, LLMResponse, LLMUsage, UsageRecord

# A scripted step: response text, or an LLMError to raise.
Step = Union[str, LLMError]


def _default_key(req: LLMRequest) -> str:
    """Key requests by the first user turn, so repair round-trips share the task's script."""
    for m in req.messages:
        if m.role == "user":
            return m.content
    return ""


class ScriptedClient:
    """
    Returns scripted steps per conversation key, in order; the last step repeats once the
    script runs out. Tracks every request and the peak number of concurrent round-trips.
    """

    def __init__(
        self,
        scripts: dict[str, Sequence[Step]] | None = None,
        *,
        default: Sequence[Step] = ("ok",),
        delay_s: float = 0.0,
        usage: LLMUsage | None = None,
        key: Callable[[LLMRequest], str] = _default_key,
    ) -> None:
        self._scripts = {k: list(v) for k, v in (scripts or {}).items()}
        self._default = list(default)
        self._delay_s = delay_s
        self._usage = usage or LLMUsage(input_tokens=10, output_tokens=5, total_tokens=15)
        self._key = key
        self._positions: dict[str, int] = defaultdict(int)
        self.requests: list[tuple[str, LLMRequest]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def calls_for(self, key: str) -> list[LLMRequest]:
        return [req for k, req in self.requests if k == key]

    async def acompletion(
        self,
        model: str,
        req: LLMRequest,
        *,
        timeout_s: float | None = None,
        api_key: str | None = None,
    ) -> LLMResponse:
        key = self._key(req)
        self.requests.append((key, req))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._delay_s:
                await asyncio.sleep(self._delay_s)
            else:
                await asyncio.sleep(0)
            script = self._scripts.get(key, self._default)
            pos = self._positions[key]
            self._positions[key] = pos + 1
            step = script[min(pos, len(script) - 1)]
            if isinstance(step, LLMError):
                raise step
            return LLMResponse(text=step, model=model, latency_ms=1, usage=self._usage)
        finally:
            self.in_flight -= 1


class RecordingSleep:
    """Drop-in for asyncio.sleep that records requested delays and only yields control."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class MemoryUsageRecorder:
    """Collects usage records in memory; optionally fails to exercise failure isolation."""

    def __init__(self, *, fail: bool = False) -> None:
        self.records: list[UsageRecord] = []
        self._fail = fail

    def record(self, usage: UsageRecord) -> None:
        if self._fail:
            raise OSError("usage stream unavailable")
        self.records.append(usage)

    async def drain(self) -> None:
        return None

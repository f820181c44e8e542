"""Pytest config and fixtures for pipeline tests. No network: the LLM client is scripted."""
import json
from pathlib import Path

import pytest

from insight_pipeline.llm.invoker import Invoker
from insight_pipeline.llm.settings import LLMSettings
from insight_pipeline.llm.testing import MemoryUsageRecorder, RecordingSleep, ScriptedClient
from insight_pipeline.llm.types import LLMMessage
from insight_pipeline.pipeline.models import Task
from insight_pipeline.pipeline.sink import JsonlResultSink
from insight_pipeline.schemas import ReviewInsight

VALID_INSIGHT = {
    "sentiment": "positive",
    "intensity": 4,
    "pain_points": [],
    "jobs_to_be_done": "stay comfortable on shift",
    "product_features": ["fabric"],
    "shift_context": "ER nurse",
}


def make_task(task_id: str, schema=ReviewInsight) -> Task:
    """Task whose user turn equals its id, so ScriptedClient scripts can be keyed by id."""
    return Task(
        task_id=task_id,
        messages=(
            LLMMessage(role="system", content="Extract insight."),
            LLMMessage(role="user", content=task_id),
        ),
        output_schema=schema,
    )


def read_jsonl(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]


@pytest.fixture
def valid_text() -> str:
    return json.dumps(VALID_INSIGHT)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_invoker(recording_sleep: RecordingSleep):
    """Factory: Invoker over a ScriptedClient with a recorded sleep and in-memory usage."""

    def _make(client: ScriptedClient, *, api_key: str | None = "sk-or-test", sleep=None) -> Invoker:
        return Invoker(
            LLMSettings(openrouter_api_key=api_key),
            client=client,
            usage_recorder=MemoryUsageRecorder(),
            sleep=sleep or recording_sleep,
        )

    return _make


@pytest.fixture
def sink(tmp_path: Path) -> JsonlResultSink:
    return JsonlResultSink(tmp_path / "insights" / "out.jsonl", tmp_path / "logs" / "errors.jsonl")

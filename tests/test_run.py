"""End-to-end bulk run over scripted responses: counts, stream contents, fatal preconditions."""
import json
from pathlib import Path

import pytest

from conftest import make_task, read_jsonl
from insight_pipeline.llm.errors import LLMMissingCredentials, LLMUnavailable
from insight_pipeline.llm.testing import ScriptedClient
from insight_pipeline.pipeline.errors import SinkWriteError
from insight_pipeline.pipeline.run import run_extraction
from insight_pipeline.pipeline.sink import JsonlResultSink
from insight_pipeline.schemas import ReviewInsight


@pytest.mark.asyncio
async def test_streams_add_up_to_task_count(make_invoker, sink: JsonlResultSink, valid_text: str) -> None:
    client = ScriptedClient(
        {
            "r2": ["not json", valid_text],
            "r3": ["{}", "{}"],
            "r4": [LLMUnavailable(status_code=500)],
            "r5": [LLMUnavailable(status_code=429), valid_text],
        },
        default=[valid_text],
    )
    tasks = [make_task(f"r{i}") for i in range(1, 9)]
    summary = await run_extraction(tasks, invoker=make_invoker(client), sink=sink, concurrency_limit=3)

    successes = read_jsonl(sink.success_path)
    failures = read_jsonl(sink.failure_path)
    assert summary.total == 8
    assert summary.succeeded == len(successes) == 6
    assert summary.failed == len(failures) == 2
    assert summary.complete
    for line in successes:
        ReviewInsight.model_validate({k: v for k, v in line.items() if k != "task_id"})
    by_id = {f["task_id"]: f["error"] for f in failures}
    assert by_id["r3"].startswith("SchemaValidationExhausted")
    assert by_id["r4"].startswith("TransientExhausted")
    assert summary.failures_by_reason == {"SchemaValidationExhausted": 1, "TransientExhausted": 1}
    assert len(client.calls_for("r2")) == 2
    assert len(client.calls_for("r4")) == 3


@pytest.mark.asyncio
async def test_missing_credentials_writes_nothing(make_invoker, tmp_path: Path, valid_text: str) -> None:
    client = ScriptedClient(default=[valid_text])
    sink = JsonlResultSink(tmp_path / "ok.jsonl", tmp_path / "err.jsonl")
    with pytest.raises(LLMMissingCredentials):
        await run_extraction([make_task("r1")], invoker=make_invoker(client, api_key=None), sink=sink)
    assert client.requests == []
    for path in (sink.success_path, sink.failure_path):
        assert not path.exists() or path.read_text(encoding="utf-8") == ""


@pytest.mark.asyncio
async def test_invalid_concurrency_rejected(make_invoker, sink: JsonlResultSink, valid_text: str) -> None:
    with pytest.raises(ValueError):
        await run_extraction(
            [make_task("r1")], invoker=make_invoker(ScriptedClient(default=[valid_text])), sink=sink, concurrency_limit=0
        )


@pytest.mark.asyncio
async def test_sink_failure_aborts_run(make_invoker, valid_text: str, tmp_path: Path) -> None:
    class BrokenSink(JsonlResultSink):
        def write(self, task, outcome) -> None:
            raise SinkWriteError("disk full")

    client = ScriptedClient(default=[valid_text], delay_s=0.01)
    sink = BrokenSink(tmp_path / "ok.jsonl", tmp_path / "err.jsonl")
    with pytest.raises(SinkWriteError):
        await run_extraction([make_task(f"r{i}") for i in range(5)], invoker=make_invoker(client), sink=sink, concurrency_limit=1)
    assert len(client.requests) < 5


@pytest.mark.asyncio
async def test_empty_task_list(make_invoker, sink: JsonlResultSink, valid_text: str) -> None:
    summary = await run_extraction([], invoker=make_invoker(ScriptedClient(default=[valid_text])), sink=sink)
    assert (summary.total, summary.succeeded, summary.failed) == (0, 0, 0)
    assert sink.success_path.exists()


@pytest.mark.asyncio
async def test_usage_written_for_successes_only(tmp_path: Path, sink: JsonlResultSink, valid_text: str, recording_sleep) -> None:
    from insight_pipeline.llm.invoker import Invoker
    from insight_pipeline.llm.settings import LLMSettings

    usage_path = tmp_path / "logs" / "llm_usage.jsonl"
    client = ScriptedClient({"bad": [LLMUnavailable()]}, default=[valid_text])
    invoker = Invoker(
        LLMSettings(openrouter_api_key="k", usage_log_path=str(usage_path)),
        client=client,
        sleep=recording_sleep,
    )
    await run_extraction([make_task("a"), make_task("bad"), make_task("b")], invoker=invoker, sink=sink)
    usage = [json.loads(line) for line in usage_path.read_text(encoding="utf-8").splitlines()]
    assert len(usage) == 2
    assert all(u["success"] is True for u in usage)

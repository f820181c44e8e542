"""Result sink: append-only JSONL streams, idempotent creation, write failures."""
import asyncio
from pathlib import Path

import pytest

from conftest import make_task, read_jsonl
from insight_pipeline.llm.types import Failure, FailureReason, Success
from insight_pipeline.pipeline.errors import SinkWriteError
from insight_pipeline.pipeline.sink import JsonlResultSink
from insight_pipeline.schemas import ReviewInsight


def _insight(**overrides) -> ReviewInsight:
    data = {
        "sentiment": "neutral",
        "intensity": 3,
        "jobs_to_be_done": "buy a spare",
        "shift_context": None,
    }
    data.update(overrides)
    return ReviewInsight(**data)


def test_open_is_idempotent_and_never_truncates(sink: JsonlResultSink) -> None:
    sink.open()
    sink.write(make_task("r1"), Success(payload=_insight()))
    sink.open()
    assert len(read_jsonl(sink.success_path)) == 1
    assert sink.failure_path.exists()
    assert sink.failure_path.read_text(encoding="utf-8") == ""


def test_success_record_merges_id_and_payload(tmp_path: Path) -> None:
    sink = JsonlResultSink(tmp_path / "ok.jsonl", tmp_path / "err.jsonl", id_field="review_id")
    sink.open()
    sink.write(make_task("r42"), Success(payload=_insight(pain_points=["seams"])))
    [line] = read_jsonl(sink.success_path)
    assert line["review_id"] == "r42"
    assert line["pain_points"] == ["seams"]
    assert ReviewInsight.model_validate({k: v for k, v in line.items() if k != "review_id"})


def test_failure_record_shape(sink: JsonlResultSink) -> None:
    sink.open()
    sink.write(
        make_task("r7"),
        Failure(reason=FailureReason.SCHEMA_VALIDATION_EXHAUSTED, last_error_message="intensity: too big"),
    )
    [line] = read_jsonl(sink.failure_path)
    assert set(line) == {"timestamp", "task_id", "error"}
    assert line["task_id"] == "r7"
    assert line["error"] == "SchemaValidationExhausted: intensity: too big"
    assert sink.failed == 1
    assert sink.failures_by_reason == {"SchemaValidationExhausted": 1}


def test_text_payload_is_wrapped(sink: JsonlResultSink) -> None:
    sink.open()
    sink.write(make_task("r1", schema=None), Success(payload="free text"))
    assert read_jsonl(sink.success_path) == [{"task_id": "r1", "text": "free text"}]


def test_appends_to_previous_run(sink: JsonlResultSink) -> None:
    sink.open()
    sink.write(make_task("r1"), Success(payload=_insight()))
    again = JsonlResultSink(sink.success_path, sink.failure_path)
    again.open()
    again.write(make_task("r1"), Success(payload=_insight()))
    assert [r["task_id"] for r in read_jsonl(sink.success_path)] == ["r1", "r1"]


@pytest.mark.asyncio
async def test_concurrent_records_do_not_interleave(sink: JsonlResultSink) -> None:
    sink.open()
    long_text = "x" * 20_000
    await asyncio.gather(
        *(sink.record(make_task(f"r{i}", schema=None), Success(payload=long_text)) for i in range(40))
    )
    lines = read_jsonl(sink.success_path)
    assert len(lines) == 40
    assert all(r["text"] == long_text for r in lines)
    assert sink.succeeded == 40


def test_unwritable_stream_raises(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    sink = JsonlResultSink(blocker / "ok.jsonl", tmp_path / "err.jsonl")
    with pytest.raises(SinkWriteError):
        sink.open()
    with pytest.raises(SinkWriteError):
        sink.write(make_task("r1"), Success(payload=_insight()))

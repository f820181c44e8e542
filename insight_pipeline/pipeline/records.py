"""Upstream helpers: load input records, format them, build tasks, locate dated files."""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Callable, Iterable

from pydantic import BaseModel, ValidationError

from insight_pipeline.llm.types import LLMMessage
from insight_pipeline.pipeline.errors import InputRecordError
from insight_pipeline.pipeline.models import AdRecord, InputRecord, Task


def to_date_stamp(day: date | None = None) -> str:
    """YYYYMMDD in local time."""
    return (day or date.today()).strftime("%Y%m%d")


def dated_file_name(prefix: str, suffix: str = ".jsonl", day: date | None = None) -> str:
    return f"{prefix}_{to_date_stamp(day)}{suffix}"


def find_latest_dated_file(directory: str | Path, prefix: str, suffix: str = ".jsonl") -> Path:
    """Return the newest <prefix>_YYYYMMDD<suffix> in directory. Raises FileNotFoundError."""
    directory = Path(directory)
    pattern = re.compile(rf"^{re.escape(prefix)}_\d{{8}}{re.escape(suffix)}$")
    candidates = (
        sorted(p.name for p in directory.iterdir() if p.is_file() and pattern.match(p.name))
        if directory.is_dir()
        else []
    )
    if not candidates:
        raise FileNotFoundError(
            f"No input file found in {directory} (expected {prefix}_YYYYMMDD{suffix})"
        )
    return directory / candidates[-1]


def _json_array_items(path: Path) -> list[Any]:
    try:
        items = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InputRecordError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(items, list):
        raise InputRecordError(f"Expected a JSON array of records in {path}")
    return items


def load_records(
    path: str | Path,
    *,
    limit: int | None = None,
    model: type[BaseModel] = InputRecord,
) -> list[Any]:
    """
    Parse records of type model. JSONL files skip blank lines; a .json file holds one array.
    Raises InputRecordError naming the line (or array item) that failed.
    """
    path = Path(path)
    if path.suffix == ".json":
        items: list[Any] = _json_array_items(path)
        label = "item"
    else:
        lines = [line.strip() for line in path.read_text(encoding="utf-8").splitlines()]
        items = [line for line in lines if line]
        label = "line"
    if limit is not None and limit > 0:
        items = items[:limit]
    records: list[Any] = []
    for index, item in enumerate(items, start=1):
        try:
            data = json.loads(item) if label == "line" else item
            records.append(model.model_validate(data))
        except (json.JSONDecodeError, ValidationError) as e:
            raise InputRecordError(f"Invalid record at {label} {index}: {e}", line_number=index) from e
    return records


def format_record_text(record: InputRecord) -> str:
    title = (record.title or "").strip()
    body = (record.body or "").strip()
    if title and body:
        return f"Title: {title}\nBody: {body}"
    return title or body or "(empty review)"


def format_ad_text(record: AdRecord) -> str:
    return "\n".join(
        [
            f"Ad Text: {record.ad_text}",
            f"Headline: {record.headline}",
            f"Image Description: {record.image_description}",
        ]
    )


def _review_task_id(record: InputRecord, position: int) -> str:
    return record.review_id


def _ad_task_id(record: AdRecord, position: int) -> str:
    return record.ad_id or f"ad-{position}"


@dataclass(frozen=True)
class RecordKind:
    """How one kind of input is parsed, identified and rendered as the user turn, plus its file defaults."""

    name: str
    model: type[BaseModel]
    format_text: Callable[[Any], str]
    task_id: Callable[[Any, int], str]
    id_field: str
    input_prefix: str
    output_prefix: str
    system_prompt_path: str


REVIEW_RECORDS = RecordKind(
    name="review",
    model=InputRecord,
    format_text=format_record_text,
    task_id=_review_task_id,
    id_field="review_id",
    input_prefix="clean_reviews",
    output_prefix="raw_insights",
    system_prompt_path="prompts/extract_review.md",
)

AD_RECORDS = RecordKind(
    name="competitor_ad",
    model=AdRecord,
    format_text=format_ad_text,
    task_id=_ad_task_id,
    id_field="ad_id",
    input_prefix="competitor_ads",
    output_prefix="competitor_analysis",
    system_prompt_path="prompts/analyze_ad.md",
)

_KIND_BY_SCHEMA = {"competitor_ad": AD_RECORDS}


def record_kind_for_schema(schema_name: str | None) -> RecordKind:
    """Input kind consumed by the bulk flow for schema_name. Reviews unless the schema says otherwise."""
    return _KIND_BY_SCHEMA.get(schema_name or "", REVIEW_RECORDS)


def build_tasks(
    records: Iterable[Any],
    system_prompt: str,
    output_schema: type[BaseModel] | None = None,
    *,
    kind: RecordKind = REVIEW_RECORDS,
) -> list[Task]:
    """One task per record: system prompt + formatted record text. Positions are 1-based."""
    return [
        Task(
            task_id=kind.task_id(record, position),
            messages=(
                LLMMessage(role="system", content=system_prompt),
                LLMMessage(role="user", content=kind.format_text(record)),
            ),
            output_schema=output_schema,
        )
        for position, record in enumerate(records, start=1)
    ]

"""DTOs used by the pipeline (tasks, review and ad input records, run summary)."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from insight_pipeline.llm.types import LLMMessage


class Task(BaseModel):
    """One record's unit of work. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    task_id: str = Field(..., min_length=1)
    messages: tuple[LLMMessage, ...]
    output_schema: type[BaseModel] | None = None


class InputRecord(BaseModel):
    """One cleaned review line from the upstream normalizer."""

    model_config = ConfigDict(extra="ignore")

    review_id: str
    title: str = ""
    body: str = ""
    rating: float | None = None
    timestamp: str | None = None
    language: Literal["en", "non-en", "unknown"] | None = None
    pii_masked: bool | None = None


class AdRecord(BaseModel):
    """One competitor ad as captured upstream. ad_id is optional; tasks fall back to the position."""

    model_config = ConfigDict(extra="ignore")

    ad_id: str | None = None
    ad_text: str = Field(..., min_length=1)
    headline: str = Field(..., min_length=1)
    image_description: str = Field(..., min_length=1)


@dataclass
class RunSummary:
    """Counts reported to the caller; succeeded + failed == total."""

    total: int
    succeeded: int = 0
    failed: int = 0
    success_path: Path | None = None
    failure_path: Path | None = None
    failures_by_reason: dict[str, int] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return self.succeeded + self.failed == self.total

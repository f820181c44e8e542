"""Per-review insight extracted by the bulk flow (closed schema, extra=forbid)."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from insight_pipeline.schemas.fields import NonEmptyStr, Score


class ReviewInsight(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sentiment: Literal["positive", "negative", "neutral"]
    intensity: Score
    pain_points: list[NonEmptyStr] = Field(default_factory=list)
    jobs_to_be_done: NonEmptyStr
    product_features: list[NonEmptyStr] = Field(default_factory=list)
    # Required, but may be null when the review gives no usage context.
    shift_context: NonEmptyStr | None

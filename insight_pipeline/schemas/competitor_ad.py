"""Analysis of one competitor ad."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

from insight_pipeline.schemas.fields import NonEmptyStr, Score


class CompetitorAdAnalysis(BaseModel):
    model_config = ConfigDict(extra="forbid")

    main_angle: NonEmptyStr
    hook_type: NonEmptyStr
    aggression_score: Score
    target_demographic: NonEmptyStr
    estimated_spend_tier: Literal["Low", "Medium", "High"]

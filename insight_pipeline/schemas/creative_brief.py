"""Creative brief produced by the single-call generation flow. List sizes are fixed by the brief format."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from insight_pipeline.schemas.fields import NonEmptyStr


class AngleHypothesis(BaseModel):
    model_config = ConfigDict(extra="forbid")
    problem: NonEmptyStr
    solution: NonEmptyStr


class Script(BaseModel):
    model_config = ConfigDict(extra="forbid")
    visual_cue: NonEmptyStr
    audio_script: NonEmptyStr


class CreativeBrief(BaseModel):
    model_config = ConfigDict(extra="forbid")

    target_audience: NonEmptyStr
    core_pain_points: list[NonEmptyStr] = Field(..., min_length=3, max_length=3)
    angle_hypotheses: list[AngleHypothesis] = Field(..., min_length=3, max_length=3)
    hooks: list[NonEmptyStr] = Field(..., min_length=10, max_length=10)
    scripts_15s: list[Script] = Field(..., min_length=3, max_length=3)
    scripts_30s: list[Script] = Field(..., min_length=2, max_length=2)
    ugc_prompts: list[NonEmptyStr] = Field(..., min_length=3)
    compliance_notes: list[NonEmptyStr] = Field(..., min_length=3)

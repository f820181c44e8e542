"""Output schemas by name. The CLI and run configuration refer to schemas by these names."""
from __future__ import annotations

from pydantic import BaseModel

from insight_pipeline.schemas.competitor_ad import CompetitorAdAnalysis
from insight_pipeline.schemas.creative_brief import AngleHypothesis, CreativeBrief, Script
from insight_pipeline.schemas.review_insight import ReviewInsight

_REGISTRY: dict[str, type[BaseModel]] = {}


def register(name: str, schema: type[BaseModel]) -> None:
    _REGISTRY[name] = schema


def get_schema(name: str) -> type[BaseModel]:
    """Return the schema registered under name."""
    schema = _REGISTRY.get(name)
    if schema is None:
        raise KeyError(f"Unknown schema: {name} (known: {', '.join(sorted(_REGISTRY))})")
    return schema


def schema_names() -> list[str]:
    return sorted(_REGISTRY)


register("review_insight", ReviewInsight)
register("competitor_ad", CompetitorAdAnalysis)
register("creative_brief", CreativeBrief)

__all__ = [
    "AngleHypothesis",
    "CompetitorAdAnalysis",
    "CreativeBrief",
    "ReviewInsight",
    "Script",
    "get_schema",
    "register",
    "schema_names",
]

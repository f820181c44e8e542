"""Field types shared by the output schemas."""
from __future__ import annotations

from typing import Annotated, Any

from pydantic import BeforeValidator, Field

NonEmptyStr = Annotated[str, Field(min_length=1)]


def _numeric_only(value: Any) -> Any:
    # Whole floats such as 7.0 pass through to int; strings and booleans do not.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("must be a number")
    return value


Score = Annotated[int, BeforeValidator(_numeric_only), Field(ge=1, le=10)]

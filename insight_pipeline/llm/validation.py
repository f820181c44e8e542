"""
Two-stage parsing of model output: locate the JSON object in free text, then validate it
against a closed pydantic schema. Pure functions, no I/O; bad input never raises.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True)
class ValidationResult(Generic[ModelT]):
    """Either a validated payload or the full list of violations."""

    payload: ModelT | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.payload is not None and not self.errors


def extract_first_object(text: str) -> str:
    """
    Return the object span of text: the whole text if it is already a bare object,
    else first '{' through last '}', else the trimmed text unchanged.
    """
    trimmed = (text or "").strip()
    if trimmed.startswith("{") and trimmed.endswith("}"):
        return trimmed
    start = trimmed.find("{")
    end = trimmed.rfind("}")
    if start >= 0 and end > start:
        return trimmed[start : end + 1]
    return trimmed


def _format_loc(loc: tuple[Any, ...]) -> str:
    parts: list[str] = []
    for item in loc:
        if isinstance(item, int):
            parts.append(f"[{item}]")
        else:
            parts.append(("." if parts else "") + str(item))
    return "".join(parts) or "<root>"


def format_validation_errors(exc: ValidationError) -> list[str]:
    """One '<path>: <message>' entry per violated constraint."""
    return [f"{_format_loc(tuple(err.get('loc', ())))}: {err.get('msg', 'invalid')}" for err in exc.errors()]


def validate_data(data: Any, schema: type[ModelT]) -> ValidationResult[ModelT]:
    """Validate already-parsed JSON data against schema."""
    if not isinstance(data, dict):
        return ValidationResult(errors=[f"<root>: expected a JSON object, got {type(data).__name__}"])
    try:
        return ValidationResult(payload=schema.model_validate(data))
    except ValidationError as e:
        return ValidationResult(errors=format_validation_errors(e))


def validate_payload(text: str, schema: type[ModelT]) -> ValidationResult[ModelT]:
    """Extract the first object from text, parse it and validate it against schema."""
    candidate = extract_first_object(text)
    if not candidate:
        return ValidationResult(errors=["<root>: response contains no JSON object"])
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        return ValidationResult(errors=[f"<root>: invalid JSON ({e.msg} at line {e.lineno} column {e.colno})"])
    return validate_data(data, schema)

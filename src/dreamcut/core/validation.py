"""Schema validation boundary applied after every pipeline stage.

Each stage hands its derived value to ``validate_stage`` and gets back either
the typed, frozen model or a ``SchemaValidationError`` carrying a field-level
report. Validation is strict: values are checked against their declared
types through their JSON form and are never coerced ("0.9" is not 0.9).

Provider output is loosely shaped, so the query analyzer first runs
``prune_unknown_fields`` to drop keys the schema does not declare. Every
dropped key is returned as a normalization note and ends up in the final
document's warnings.
"""

from __future__ import annotations

import logging
import types
import typing
from dataclasses import dataclass
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError
from pydantic_core import to_json

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

MAX_INPUT_PREVIEW = 80


@dataclass(frozen=True)
class FieldError:
    """One entry of a field-level validation report."""

    location: str
    message: str
    error_type: str
    input_preview: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "location": self.location,
            "message": self.message,
            "type": self.error_type,
            "input": self.input_preview,
        }


class SchemaValidationError(Exception):
    """A stage produced a value that does not match its declared shape.

    Attributes:
        stage: Pipeline stage whose output failed validation.
        model_name: Name of the schema validated against.
        errors: Field-level report.
    """

    def __init__(self, stage: str, model_name: str, errors: list[FieldError]) -> None:
        self.stage = stage
        self.model_name = model_name
        self.errors = errors
        super().__init__(
            f"{model_name} failed validation in stage '{stage}' with {len(errors)} error(s)"
        )

    def to_report(self) -> str:
        """Render the report one line per field error."""
        lines = [str(self)]
        for error in self.errors:
            line = f"  - {error.location}: {error.message} [{error.error_type}]"
            if error.input_preview is not None:
                line += f" (input: {error.input_preview})"
            lines.append(line)
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "model": self.model_name,
            "errors": [error.to_dict() for error in self.errors],
        }


def _preview(value: Any) -> str | None:
    if value is None:
        return None
    text = repr(value)
    if len(text) > MAX_INPUT_PREVIEW:
        text = text[: MAX_INPUT_PREVIEW - 3] + "..."
    return text


def _field_errors(error: ValidationError) -> list[FieldError]:
    return [
        FieldError(
            location=".".join(str(part) for part in item["loc"]) or "<root>",
            message=item["msg"],
            error_type=item["type"],
            input_preview=_preview(item.get("input")),
        )
        for item in error.errors()
    ]


def validate_stage(model_cls: type[M], data: Any, stage: str) -> M:
    """Validate a stage value against its schema.

    Args:
        model_cls: Schema the value must satisfy.
        data: Mapping (or model instance) produced by the stage.
        stage: Stage name used in the error report.

    Returns:
        The validated, frozen model instance.

    Raises:
        SchemaValidationError: With a field-level report on any mismatch.

    Example:
        >>> analysis = validate_stage(QueryAnalysis, raw, stage="query_analysis")
    """
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")

    try:
        payload = to_json(data)
    except Exception as e:
        raise SchemaValidationError(
            stage,
            model_cls.__name__,
            [FieldError("<root>", f"value is not serializable: {e}", "serialization")],
        ) from e

    try:
        return model_cls.model_validate_json(payload, strict=True)
    except ValidationError as e:
        errors = _field_errors(e)
        logger.error(f"{model_cls.__name__} validation failed in {stage}: {len(errors)} error(s)")
        raise SchemaValidationError(stage, model_cls.__name__, errors) from e


# =============================================================================
# Unknown-field pruning
# =============================================================================


def _nested_model(annotation: Any) -> tuple[type[BaseModel] | None, bool]:
    """Find a model class inside an annotation.

    Returns (model, is_list) for ``Model``, ``Model | None`` and ``list[Model]``.
    """
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return annotation, False

    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)
    if origin is list and args:
        model, _ = _nested_model(args[0])
        return model, model is not None
    if origin in (typing.Union, types.UnionType):
        for arg in args:
            model, is_list = _nested_model(arg)
            if model is not None:
                return model, is_list
    return None, False


def prune_unknown_fields(
    model_cls: type[BaseModel], data: dict[str, Any], path: str = ""
) -> tuple[dict[str, Any], list[str]]:
    """Drop keys the schema does not declare, recursively.

    Args:
        model_cls: Schema describing the expected shape.
        data: Loosely shaped mapping, typically parsed provider output.
        path: Dotted prefix used in notes (internal).

    Returns:
        Tuple of (pruned copy, normalization notes naming every dropped key).
    """
    cleaned: dict[str, Any] = {}
    notes: list[str] = []

    for key, value in data.items():
        location = f"{path}{key}"
        field = model_cls.model_fields.get(key)
        if field is None:
            notes.append(f"Dropped unknown field '{location}'")
            continue

        nested, is_list = _nested_model(field.annotation)
        if nested is not None and not is_list and isinstance(value, dict):
            value, nested_notes = prune_unknown_fields(nested, value, f"{location}.")
            notes.extend(nested_notes)
        elif nested is not None and is_list and isinstance(value, list):
            items = []
            for index, item in enumerate(value):
                if isinstance(item, dict):
                    item, nested_notes = prune_unknown_fields(
                        nested, item, f"{location}[{index}]."
                    )
                    notes.extend(nested_notes)
                items.append(item)
            value = items

        cleaned[key] = value

    return cleaned, notes

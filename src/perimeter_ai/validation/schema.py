"""Declarative schema validation for untrusted request payloads.

A schema is an ordered mapping of field name to a field variant. Variants
are frozen dataclasses so a schema can be declared once at import time and
shared across every request. ``validate`` is pure: no I/O, no coercion,
no default injection, and it reports every violation it finds.

Example::

    schema = {
        "email": EmailField(required=True, max_length=254),
        "tags": ArrayField(max_items=10, item_type=StringField(max_length=32)),
    }
    result = validate(schema, payload)
    if not result.success:
        raise ValidationError(result.errors)
"""

from __future__ import annotations

import dataclasses
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from perimeter_ai.errors import ValidationError

T = TypeVar("T")

# Whole-value patterns, applied with fullmatch
EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE
)


# ---------------------------------------------------------------------------
# Field variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StringField:
    """A string field.

    ``pattern`` is applied with ``search``, so an unanchored pattern matches
    anywhere in the value. Anchor whole-value patterns with ``\\A`` and
    ``\\Z``: in Python ``$`` also matches before a trailing newline.
    """

    required: bool = False
    min_length: int | None = None
    max_length: int | None = None
    pattern: re.Pattern[str] | None = None
    enum: tuple[str, ...] | None = None


@dataclass(frozen=True)
class EmailField:
    required: bool = False
    max_length: int | None = None


@dataclass(frozen=True)
class UuidField:
    required: bool = False


@dataclass(frozen=True)
class NumberField:
    required: bool = False
    min: float | None = None
    max: float | None = None


@dataclass(frozen=True)
class BooleanField:
    required: bool = False


@dataclass(frozen=True)
class ArrayField:
    required: bool = False
    min_items: int | None = None
    max_items: int | None = None
    # Every element is validated as a required value of this variant.
    item_type: FieldSchema | None = None


@dataclass(frozen=True)
class ObjectField:
    required: bool = False
    properties: Mapping[str, FieldSchema] | None = None


FieldSchema = (
    StringField | EmailField | UuidField | NumberField | BooleanField | ArrayField | ObjectField
)
Schema = Mapping[str, FieldSchema]


@dataclass(frozen=True)
class ValidationResult(Generic[T]):
    """Outcome of :func:`validate`."""

    success: bool
    data: T | None = None
    errors: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    # bool is an int subclass; JSON true/false is never a number
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return not (isinstance(value, float) and math.isnan(value))


def _check_string(name: str, value: str, spec: StringField) -> list[str]:
    errors: list[str] = []
    if spec.min_length is not None and len(value) < spec.min_length:
        errors.append(f"{name} must be at least {spec.min_length} characters")
    if spec.max_length is not None and len(value) > spec.max_length:
        errors.append(f"{name} must be at most {spec.max_length} characters")
    if spec.pattern is not None and not spec.pattern.search(value):
        errors.append(f"{name} has invalid format")
    if spec.enum is not None and value not in spec.enum:
        errors.append(f"{name} must be one of: {', '.join(spec.enum)}")
    return errors


def validate_field(name: str, value: Any, spec: FieldSchema) -> list[str]:
    """Validate one value against one field variant.

    Returns the list of violations, prefixed with ``name``. Nested fields
    are reported as ``name.sub`` and array elements as ``name[i]``.
    """
    if value is None:
        return [f"{name} is required"] if spec.required else []

    errors: list[str] = []
    match spec:
        case StringField():
            if not isinstance(value, str):
                return [f"{name} must be a string"]
            errors.extend(_check_string(name, value, spec))

        case EmailField():
            if not isinstance(value, str):
                return [f"{name} must be a string"]
            if not EMAIL_PATTERN.fullmatch(value):
                errors.append(f"{name} must be a valid email address")
            if spec.max_length is not None and len(value) > spec.max_length:
                errors.append(f"{name} must be at most {spec.max_length} characters")

        case UuidField():
            if not isinstance(value, str):
                return [f"{name} must be a string"]
            if not UUID_PATTERN.fullmatch(value):
                errors.append(f"{name} must be a valid UUID")

        case NumberField():
            if not _is_number(value):
                return [f"{name} must be a number"]
            if spec.min is not None and value < spec.min:
                errors.append(f"{name} must be at least {spec.min}")
            if spec.max is not None and value > spec.max:
                errors.append(f"{name} must be at most {spec.max}")

        case BooleanField():
            if not isinstance(value, bool):
                errors.append(f"{name} must be a boolean")

        case ArrayField():
            if not isinstance(value, list):
                return [f"{name} must be an array"]
            if spec.max_items is not None and len(value) > spec.max_items:
                errors.append(f"{name} must have at most {spec.max_items} items")
            if spec.min_items is not None and len(value) < spec.min_items:
                errors.append(f"{name} must have at least {spec.min_items} items")
            if spec.item_type is not None:
                item_spec = dataclasses.replace(spec.item_type, required=True)
                for i, item in enumerate(value):
                    errors.extend(validate_field(f"{name}[{i}]", item, item_spec))

        case ObjectField():
            if not isinstance(value, dict):
                return [f"{name} must be an object"]
            for prop_name, prop_spec in (spec.properties or {}).items():
                errors.extend(validate_field(f"{name}.{prop_name}", value.get(prop_name), prop_spec))

        case _:
            raise TypeError(f"Unknown field schema: {type(spec).__name__}")

    return errors


def validate(schema: Schema, payload: Any) -> ValidationResult[Any]:
    """Validate ``payload`` against ``schema``.

    The payload must be a JSON object. On success the original mapping is
    returned untouched as ``data``; on failure ``errors`` lists every
    violation in schema order.
    """
    if not isinstance(payload, Mapping):
        return ValidationResult(success=False, errors=["Input must be an object"])

    errors: list[str] = []
    for name, spec in schema.items():
        errors.extend(validate_field(name, payload.get(name), spec))

    if errors:
        return ValidationResult(success=False, errors=errors)
    return ValidationResult(success=True, data=payload)


def require_valid(schema: Schema, payload: Any) -> Mapping[str, Any]:
    """Validate and return the payload, raising :class:`ValidationError` on failure."""
    result = validate(schema, payload)
    if not result.success:
        raise ValidationError(result.errors)
    return result.data  # type: ignore[return-value]

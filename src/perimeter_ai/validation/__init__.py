"""Schema validation and string sanitization for inbound payloads."""

from perimeter_ai.validation.sanitize import (
    sanitize_filename,
    sanitize_identifier,
    sanitize_string,
)
from perimeter_ai.validation.schema import (
    ArrayField,
    BooleanField,
    EmailField,
    FieldSchema,
    NumberField,
    ObjectField,
    Schema,
    StringField,
    UuidField,
    ValidationResult,
    require_valid,
    validate,
)

__all__ = [
    "ArrayField",
    "BooleanField",
    "EmailField",
    "FieldSchema",
    "NumberField",
    "ObjectField",
    "Schema",
    "StringField",
    "UuidField",
    "ValidationResult",
    "require_valid",
    "sanitize_filename",
    "sanitize_identifier",
    "sanitize_string",
    "validate",
]

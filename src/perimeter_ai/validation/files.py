"""File upload pre-checks: size cap, MIME allow-list and extension match."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from perimeter_ai.errors import ValidationError
from perimeter_ai.validation.sanitize import sanitize_filename
from perimeter_ai.validation.schema import require_valid
from perimeter_ai.validation.schemas import ALLOWED_UPLOAD_TYPES, FILE_UPLOAD_SCHEMA

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def check_file_upload(
    payload: Mapping[str, Any], *, default_max_size: int = DEFAULT_MAX_UPLOAD_BYTES
) -> str:
    """Validate an upload description and return the sanitized file name.

    Raises:
        ValidationError: Schema violation, file too large, MIME type not
            allowed, or extension not matching the MIME type.
    """
    payload = require_valid(FILE_UPLOAD_SCHEMA, payload)
    file_name: str = payload["fileName"]
    mime_type: str = payload["mimeType"]
    max_size = payload.get("maxSize") or default_max_size

    if payload["fileSize"] > max_size:
        raise ValidationError(
            [f"File size exceeds maximum allowed size of {max_size / 1024 / 1024:g}MB"]
        )

    extensions = ALLOWED_UPLOAD_TYPES.get(mime_type)
    if extensions is None:
        raise ValidationError(
            ["File type not allowed. Please upload an image, PDF, or video file."]
        )

    _, dot, ext = file_name.rpartition(".")
    if not dot or ext.lower() not in extensions:
        raise ValidationError(["File extension does not match file type"])

    return sanitize_filename(file_name)

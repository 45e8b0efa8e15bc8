"""File upload validation endpoint."""

from __future__ import annotations

from aiohttp import web

from perimeter_ai.api.guards import client_address, enforce_rate_limit, read_json_body
from perimeter_ai.validation.files import check_file_upload
from perimeter_ai.validation.schema import require_valid
from perimeter_ai.validation.schemas import FILE_UPLOAD_SCHEMA

RATE_SCOPE = "file_upload"


async def handle_validate_upload(request: web.Request) -> web.Response:
    """POST /api/v1/uploads/validate: check an upload before it is stored.

    Body: ``{fileName, fileSize, mimeType, maxSize?}``.
    """
    payload = require_valid(FILE_UPLOAD_SCHEMA, await read_json_body(request))
    enforce_rate_limit(request, RATE_SCOPE, client_address(request))

    sanitized_name = check_file_upload(
        payload, default_max_size=request.app["max_upload_bytes"]
    )
    return web.json_response(
        {
            "success": True,
            "valid": True,
            "sanitizedName": sanitized_name,
            "message": "File validation passed",
        }
    )

"""Middleware for the boundary API server.

``create_origin_middleware`` is the outermost layer: it answers preflight
requests, rejects disallowed origins and stamps the hardened header set on
every response. ``create_error_middleware`` sits inside it and renders
errors as JSON so they receive those headers too.
"""

from __future__ import annotations

import math
from typing import Any

from aiohttp import web

from perimeter_ai.api.origin import OriginGateway
from perimeter_ai.errors import BoundaryError, OriginError, RateLimitError, sanitize_error
from perimeter_ai.logging import get_logger

log = get_logger("perimeter_ai.api.middleware")


def error_response(error: BoundaryError) -> web.Response:
    """Render a boundary error as a JSON response."""
    response = web.json_response(error.to_payload(), status=error.status)
    if isinstance(error, RateLimitError):
        response.headers["Retry-After"] = str(math.ceil(error.time_until_reset_ms / 1000))
    return response


def create_origin_middleware(gateway: OriginGateway) -> Any:
    """Create the origin/CORS middleware."""

    @web.middleware
    async def origin_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
        origin = request.headers.get("Origin")
        decision = gateway.decide(origin)

        if request.method == "OPTIONS":
            response: web.StreamResponse = web.Response(status=204)
        elif not decision.allowed:
            log.warning("origin_rejected", origin=origin, path=request.path)
            response = error_response(OriginError())
        else:
            response = await handler(request)

        response.headers.update(decision.headers)
        return response

    return origin_middleware


def create_error_middleware() -> Any:
    """Create the middleware that turns exceptions into JSON error bodies.

    Internal exception text never reaches the caller: unexpected errors are
    logged with their traceback and answered with a sanitized message.
    """

    @web.middleware
    async def error_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
        try:
            return await handler(request)  # type: ignore[no-any-return]
        except BoundaryError as exc:
            log.info("request_rejected", path=request.path, status=exc.status, code=exc.code)
            return error_response(exc)
        except web.HTTPException as exc:
            if exc.status < 400:
                raise
            return web.json_response(
                {"success": False, "error": exc.reason, "code": f"ERR_{exc.status}"},
                status=exc.status,
            )
        except Exception as exc:
            log.exception("unhandled_request_error", path=request.path)
            return web.json_response(
                {"success": False, "error": sanitize_error(exc), "code": "ERR_500"},
                status=500,
            )

    return error_middleware

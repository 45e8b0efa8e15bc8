"""Per-handler guards: body parsing, caller authorization, rate limiting.

Handlers call these in boundary order (auth, validation, rate limit) and
let the raised :class:`BoundaryError` be rendered by the error middleware.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from aiohttp import web

from perimeter_ai.api.auth import CallerContext, require_role, resolve_caller
from perimeter_ai.api.ratelimit import RateLimiter
from perimeter_ai.errors import RateLimitError, ValidationError


@dataclass(frozen=True)
class RatePolicy:
    """Attempt quota for one guarded operation."""

    max_attempts: int
    window_ms: int


async def read_json_body(request: web.Request, *, optional: bool = False) -> Any:
    """Parse the JSON request body.

    An empty body yields ``None`` when ``optional`` is set and ``{}``
    otherwise, so schema validation reports the missing fields. A body
    that does not decode in the declared charset is invalid JSON.
    """
    try:
        raw = await request.text()
    except UnicodeDecodeError:
        raise ValidationError(["Invalid JSON body"]) from None
    if not raw.strip():
        return None if optional else {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError(["Invalid JSON body"]) from None


def require_privileged_caller(request: web.Request) -> CallerContext:
    """Resolve the bearer credential and require a privileged role."""
    caller = resolve_caller(request.headers.get("Authorization"), request.app["jwt_secret"])
    require_role(caller, request.app["privileged_roles"])
    request["caller"] = caller
    return caller


def client_address(request: web.Request) -> str:
    """Best-effort remote address used as a rate limit key."""
    return request.remote or "unknown"


def enforce_rate_limit(request: web.Request, scope: str, identifier: str) -> None:
    """Count an attempt against ``scope`` for ``identifier``.

    Raises:
        RateLimitError: The identifier is over quota for the current window.
    """
    limiter: RateLimiter = request.app["rate_limiter"]
    policy: RatePolicy = request.app["rate_policies"][scope]
    decision = limiter.admit(f"{scope}:{identifier}", policy.max_attempts, policy.window_ms)
    if not decision.allowed:
        raise RateLimitError(decision.time_until_reset_ms or 0)

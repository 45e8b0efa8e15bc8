"""Caller identity for privileged endpoints.

Identity is issued elsewhere; this module only decodes the bearer JWT
(HS256) into a :class:`CallerContext` and checks the caller's role.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import dataclass

import jwt  # type: ignore[import-not-found]

from perimeter_ai.errors import AuthError
from perimeter_ai.logging import get_logger

log = get_logger("perimeter_ai.api.auth")

DEFAULT_PRIVILEGED_ROLES = frozenset({"admin", "super_admin"})
_DEFAULT_EXPIRY_SECONDS = 3600
_BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class CallerContext:
    """Verified identity of the caller."""

    user_id: str
    role: str


def create_access_token(
    user_id: str,
    role: str,
    secret: str,
    *,
    expiry_seconds: int = _DEFAULT_EXPIRY_SECONDS,
) -> str:
    """Create a signed bearer token (used by tooling and tests).

    Args:
        user_id: Subject of the token.
        role: Role claim checked by :func:`require_role`.
        secret: JWT signing secret.
        expiry_seconds: Token lifetime in seconds (default 1h).
    """
    now = int(time.time())
    payload = {"sub": user_id, "role": role, "iat": now, "exp": now + expiry_seconds}
    return jwt.encode(payload, secret, algorithm="HS256")


def resolve_caller(authorization: str | None, secret: str) -> CallerContext:
    """Decode an ``Authorization`` header value into a caller.

    Raises:
        AuthError: Header missing or malformed, token invalid or expired,
            or required claims absent. The token is never echoed back.
    """
    if not authorization or not authorization.startswith(_BEARER_PREFIX):
        raise AuthError("Authentication required")

    token = authorization[len(_BEARER_PREFIX) :].strip()
    try:
        payload = jwt.decode(token, secret, algorithms=["HS256"])
    except jwt.InvalidTokenError as exc:
        log.info("bearer_token_rejected", reason=type(exc).__name__)
        raise AuthError("Invalid or expired authentication token") from None

    user_id = payload.get("sub")
    role = payload.get("role")
    if not isinstance(user_id, str) or not isinstance(role, str):
        log.info("bearer_token_rejected", reason="missing_claims")
        raise AuthError("Invalid or expired authentication token")

    return CallerContext(user_id=user_id, role=role)


def require_role(
    caller: CallerContext, roles: Iterable[str] = DEFAULT_PRIVILEGED_ROLES
) -> CallerContext:
    """Raise a 403 :class:`AuthError` unless the caller holds one of ``roles``."""
    if caller.role not in set(roles):
        log.warning("privileged_access_denied", user_id=caller.user_id, role=caller.role)
        raise AuthError.forbidden()
    return caller

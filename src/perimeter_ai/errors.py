"""Error taxonomy for the request boundary.

Every error that can cross the boundary carries an HTTP status, a
machine-readable code and a message that is safe to show to the caller.
Internal details belong in the logs, never in ``public_message``.
"""

from __future__ import annotations

# Map of error patterns to safe user-facing messages
_ERROR_MAP: dict[str, str] = {
    "duplicate key": "This operation conflicts with existing data",
    "foreign key": "Related data not found",
    "not found": "Resource not available",
    "permission denied": "You do not have permission to perform this action",
    "rate limit": "Too many requests. Please try again later",
    "authentication": "Authentication failed",
    "authorization": "Access denied",
    "invalid": "Invalid request",
    "timeout": "Request timed out. Please try again",
    "network": "Network error. Please try again",
    "constraint": "Data validation failed",
    "violation": "Operation not allowed",
    "overflow": "Data limit exceeded",
    "syntax": "Invalid request format",
    "connection": "Service temporarily unavailable",
}

GENERIC_ERROR = "Operation failed. Please try again or contact support."


def sanitize_error(error: BaseException | str) -> str:
    """Map an internal error to a fixed, user-safe message.

    The first known pattern found in the lowercased message wins; anything
    unrecognised collapses to :data:`GENERIC_ERROR`.
    """
    lowered = str(error).lower()
    for pattern, safe_message in _ERROR_MAP.items():
        if pattern in lowered:
            return safe_message
    return GENERIC_ERROR


class BoundaryError(Exception):
    """Base class for errors rendered as JSON responses at the boundary."""

    status: int = 500
    code: str = "ERR_INTERNAL"
    default_message: str = GENERIC_ERROR

    def __init__(self, public_message: str | None = None, *, status: int | None = None) -> None:
        self.public_message = public_message or self.default_message
        if status is not None:
            self.status = status
        super().__init__(self.public_message)

    def to_payload(self) -> dict[str, object]:
        """Body of the JSON error response."""
        return {"success": False, "error": self.public_message, "code": self.code}


class ValidationError(BoundaryError):
    """Malformed or out-of-contract input."""

    status = 400
    code = "ERR_VALIDATION"
    default_message = "Invalid request"

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or self.default_message)


class AuthError(BoundaryError):
    """Missing, invalid or insufficiently privileged credential."""

    status = 401
    code = "ERR_UNAUTHORIZED"
    default_message = "Authentication required"

    @classmethod
    def forbidden(cls) -> AuthError:
        err = cls("Admin privileges required", status=403)
        err.code = "ERR_FORBIDDEN"
        return err


class OriginError(BoundaryError):
    """Cross-origin caller not on the allow-list."""

    status = 403
    code = "ERR_FORBIDDEN_ORIGIN"
    default_message = "Origin not allowed"


class RateLimitError(BoundaryError):
    """Caller exceeded its attempt quota for the current window."""

    status = 429
    code = "ERR_RATE_LIMITED"
    default_message = "Too many requests. Please try again later"

    def __init__(self, time_until_reset_ms: int) -> None:
        self.time_until_reset_ms = max(0, time_until_reset_ms)
        super().__init__()

    def to_payload(self) -> dict[str, object]:
        payload = super().to_payload()
        payload["retryAfterMs"] = self.time_until_reset_ms
        return payload


class UpstreamError(BoundaryError):
    """The reasoning service failed or answered with a non-2xx status."""

    status = 500
    code = "ERR_UPSTREAM"
    default_message = "Threat analysis failed. Please try again"


class PersistenceError(Exception):
    """A storage read or write failed.

    Never rendered to callers: persistence is best-effort at this boundary.
    """

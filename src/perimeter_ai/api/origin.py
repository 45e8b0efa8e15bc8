"""Origin allow-list and hardened response headers.

The gateway only reads configuration fixed at construction time, so one
instance is shared by every request.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from perimeter_ai.config import Settings

DEFAULT_PREVIEW_PATTERN = r"^https://[a-zA-Z0-9-]+--[a-f0-9-]+\.lovable\.app$"

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Credentials": "true",
    "Access-Control-Max-Age": "86400",
}

SECURITY_HEADERS: dict[str, str] = {
    "Content-Security-Policy": (
        "default-src 'self'; script-src 'self' 'unsafe-inline'; "
        "style-src 'self' 'unsafe-inline'; img-src 'self' data: https:; "
        "connect-src 'self' https:"
    ),
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}


@dataclass(frozen=True)
class OriginDecision:
    """Per-request verdict on the declared origin."""

    allowed: bool
    headers: dict[str, str] = field(default_factory=dict)


class OriginGateway:
    """Decide whether a cross-origin caller may proceed.

    An origin is accepted when it exactly matches the allow-list (plus the
    development origins when ``development`` is set) or fully matches the
    single preview-deployment pattern. Nothing else is accepted and no
    wildcard is ever emitted.
    """

    def __init__(
        self,
        allowed_origins: Iterable[str],
        *,
        dev_origins: Iterable[str] = (),
        preview_pattern: str | None = DEFAULT_PREVIEW_PATTERN,
        development: bool = False,
    ) -> None:
        origins = set(allowed_origins)
        if development:
            origins.update(dev_origins)
        self._origins = frozenset(origins)
        self._preview = re.compile(preview_pattern) if preview_pattern else None

    @classmethod
    def from_settings(cls, settings: Settings) -> OriginGateway:
        return cls(
            settings.allowed_origins,
            dev_origins=settings.dev_origins,
            preview_pattern=settings.preview_origin_pattern or None,
            development=settings.is_development,
        )

    @property
    def origins(self) -> frozenset[str]:
        """Exact-match origins active for this process."""
        return self._origins

    def is_allowed(self, origin: str) -> bool:
        if origin in self._origins:
            return True
        return self._preview is not None and self._preview.fullmatch(origin) is not None

    def decide(self, origin: str | None) -> OriginDecision:
        """Return the verdict and the full header set for ``origin``.

        A missing origin (same-origin or non-browser caller) passes through
        without an ``Access-Control-Allow-Origin`` header.
        """
        headers = {**CORS_HEADERS, **SECURITY_HEADERS}
        if not origin:
            return OriginDecision(allowed=True, headers=headers)

        allowed = self.is_allowed(origin)
        if allowed:
            headers["Access-Control-Allow-Origin"] = origin
            headers["Vary"] = "Origin"
        return OriginDecision(allowed=allowed, headers=headers)

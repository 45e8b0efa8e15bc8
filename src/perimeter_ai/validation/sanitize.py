"""String sanitization for values that end up in markup, keys or paths."""

from __future__ import annotations

import re

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_NON_IDENTIFIER = re.compile(r"[^a-zA-Z0-9_-]")
_NON_FILENAME = re.compile(r"[^a-zA-Z0-9.-]")

MAX_IDENTIFIER_LENGTH = 100
MAX_FILENAME_LENGTH = 255

# "&" is left alone so that sanitizing twice is a no-op.
_ESCAPES = str.maketrans(
    {
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&#x27;",
    }
)


def sanitize_string(value: str) -> str:
    """Strip control characters, escape markup characters and trim."""
    return _CONTROL_CHARS.sub("", value).translate(_ESCAPES).strip()


def sanitize_identifier(value: str) -> str:
    """Reduce ``value`` to ``[a-zA-Z0-9_-]`` for use as a storage key."""
    return _NON_IDENTIFIER.sub("", value)[:MAX_IDENTIFIER_LENGTH]


def sanitize_filename(value: str) -> str:
    """Replace anything outside ``[a-zA-Z0-9.-]`` with ``_``."""
    return _NON_FILENAME.sub("_", value)[:MAX_FILENAME_LENGTH]

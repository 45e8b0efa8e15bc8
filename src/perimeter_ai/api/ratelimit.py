"""In-memory rate limiting for repeated submissions.

Counters live in a store injected at construction time so each test (or
each process) gets its own table. Reads and writes are not locked:
concurrent bursts from one identifier may be slightly over- or
under-admitted, which is acceptable for abuse deterrence.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from perimeter_ai.logging import get_logger

log = get_logger("perimeter_ai.api.ratelimit")


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


@dataclass
class RateWindowRecord:
    """Attempt counter for one identifier."""

    count: int
    window_start: int


@dataclass(frozen=True)
class RateDecision:
    """Result of an admission check."""

    allowed: bool
    time_until_reset_ms: int | None = None


class RateWindowStore(Protocol):
    """Storage capability behind :class:`RateLimiter`."""

    def get(self, identifier: str) -> RateWindowRecord | None: ...

    def put(self, identifier: str, record: RateWindowRecord) -> None: ...


class InMemoryRateWindowStore:
    """Process-local counter table."""

    def __init__(self) -> None:
        self._records: dict[str, RateWindowRecord] = {}

    def get(self, identifier: str) -> RateWindowRecord | None:
        return self._records.get(identifier)

    def put(self, identifier: str, record: RateWindowRecord) -> None:
        self._records[identifier] = record

    def __len__(self) -> int:
        return len(self._records)


class RateLimiter:
    """Fixed-window attempt counter per identifier."""

    def __init__(
        self,
        store: RateWindowStore | None = None,
        clock: Callable[[], int] = _monotonic_ms,
    ) -> None:
        self._store = store if store is not None else InMemoryRateWindowStore()
        self._clock = clock

    def admit(self, identifier: str, max_attempts: int, window_ms: int) -> RateDecision:
        """Count an attempt and decide whether it may proceed.

        The window restarts on the first attempt and on the first attempt
        after ``window_ms`` has elapsed since it started.
        """
        now = self._clock()
        record = self._store.get(identifier)

        if record is None or now - record.window_start > window_ms:
            self._store.put(identifier, RateWindowRecord(count=1, window_start=now))
            return RateDecision(allowed=True)

        record.count += 1
        self._store.put(identifier, record)

        if record.count <= max_attempts:
            return RateDecision(allowed=True)

        remaining = record.window_start + window_ms - now
        log.warning(
            "rate_limit_exceeded",
            identifier=identifier,
            attempts=record.count,
            max_attempts=max_attempts,
            window_ms=window_ms,
        )
        return RateDecision(allowed=False, time_until_reset_ms=remaining)


class SlidingWindowRateLimiter:
    """Timestamp-log limiter: at most ``max_attempts`` in any trailing window.

    Rejected attempts are not recorded, so a caller that backs off regains
    capacity as soon as its oldest admitted attempt ages out.
    """

    def __init__(self, clock: Callable[[], int] = _monotonic_ms) -> None:
        self._timestamps: dict[str, list[int]] = {}
        self._clock = clock

    def admit(self, identifier: str, max_attempts: int, window_ms: int) -> RateDecision:
        now = self._clock()
        window_start = now - window_ms
        recent = [ts for ts in self._timestamps.get(identifier, []) if ts > window_start]

        if len(recent) >= max_attempts:
            self._timestamps[identifier] = recent
            remaining = min(recent) + window_ms - now if recent else window_ms
            log.warning(
                "sliding_rate_limit_exceeded",
                identifier=identifier,
                attempts=len(recent),
                max_attempts=max_attempts,
                time_until_reset_ms=remaining,
            )
            return RateDecision(allowed=False, time_until_reset_ms=remaining)

        recent.append(now)
        self._timestamps[identifier] = recent
        return RateDecision(allowed=True)

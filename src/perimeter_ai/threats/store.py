"""PostgreSQL-backed storage for the threat analysis pipeline.

Reads recent ``security_events`` and appends to ``ai_threat_analyses`` and
``security_alerts``. Nothing here updates or deletes: alert resolution
belongs to another service. Driver errors surface as
:class:`PersistenceError` so callers can treat storage as best-effort.
"""

from __future__ import annotations

import json
from typing import Any

import asyncpg  # type: ignore[import-untyped,import-not-found]
from pydantic import ValidationError as PydanticValidationError

from perimeter_ai.errors import PersistenceError
from perimeter_ai.logging import get_logger
from perimeter_ai.threats.models import SecurityAlert, SecurityEvent, ThreatAnalysis

log = get_logger("perimeter_ai.threats.store")

# ---------------------------------------------------------------------------
# SQL schema
# ---------------------------------------------------------------------------
_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS ai_threat_analyses (
    id                  UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
    analysis_type       VARCHAR(50)  NOT NULL,
    threat_level        VARCHAR(20)  NOT NULL,
    threat_type         TEXT         NOT NULL,
    confidence_score    INT          NOT NULL,
    risk_score          INT          NOT NULL,
    reasoning           TEXT         NOT NULL,
    recommended_actions JSONB        DEFAULT '[]'::jsonb,
    detected_patterns   JSONB        DEFAULT '[]'::jsonb,
    analysis_data       JSONB        NOT NULL,
    events_analyzed     INT          NOT NULL,
    requested_by        TEXT,
    created_at          TIMESTAMPTZ  NOT NULL DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_ai_threat_analyses_created
    ON ai_threat_analyses (created_at DESC);

CREATE TABLE IF NOT EXISTS security_alerts (
    id              UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
    alert_type      TEXT         NOT NULL,
    severity        VARCHAR(20)  NOT NULL,
    title           TEXT         NOT NULL,
    description     TEXT,
    metadata        JSONB        DEFAULT '{}'::jsonb,
    is_resolved     BOOLEAN      NOT NULL DEFAULT FALSE,
    resolved_at     TIMESTAMPTZ,
    resolved_by     TEXT,
    created_at      TIMESTAMPTZ  NOT NULL DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_security_alerts_unresolved
    ON security_alerts (created_at DESC) WHERE NOT is_resolved;
"""

_RECENT_EVENTS_SQL = """
SELECT id::text AS id, user_id::text AS user_id, event_type, severity,
       details, created_at, ip_address::text AS ip_address, user_agent
FROM security_events
ORDER BY created_at DESC
LIMIT $1
"""


class ThreatStore:
    """Pool-backed access to the telemetry and assessment tables."""

    def __init__(self, dsn: str) -> None:
        self._dsn = dsn
        self._pool: asyncpg.Pool | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create connection pool and ensure the output tables exist."""
        try:
            self._pool = await asyncpg.create_pool(dsn=self._dsn)
            log.info("threat_store_pool_created", dsn=self._dsn.split("@")[-1])
        except (asyncpg.PostgresError, OSError) as exc:
            log.error("threat_store_pool_creation_failed", error=str(exc))
            raise

        await self._ensure_schema()

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            log.info("threat_store_pool_closed")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def fetch_recent_events(self, limit: int) -> list[SecurityEvent]:
        """Return the ``limit`` most recent security events, newest first."""
        rows = await self._fetch(_RECENT_EVENTS_SQL, limit)
        events = []
        for row in rows:
            record = dict(row)
            try:
                if isinstance(record.get("details"), str):
                    record["details"] = json.loads(record["details"])
                events.append(SecurityEvent.model_validate(record))
            except (ValueError, PydanticValidationError) as exc:
                raise PersistenceError(f"malformed security event row: {exc}") from exc
        return events

    # ------------------------------------------------------------------
    # Appends
    # ------------------------------------------------------------------

    async def insert_analysis(
        self,
        analysis: ThreatAnalysis,
        *,
        analysis_type: str,
        events_analyzed: int,
        requested_by: str | None = None,
    ) -> str:
        """Append an immutable analysis record and return its id."""
        analysis_id = await self._fetchval(
            """
            INSERT INTO ai_threat_analyses (
                analysis_type, threat_level, threat_type, confidence_score,
                risk_score, reasoning, recommended_actions, detected_patterns,
                analysis_data, events_analyzed, requested_by
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8::jsonb, $9::jsonb, $10, $11)
            RETURNING id::text
            """,
            analysis_type,
            analysis.threat_level.value,
            analysis.threat_type,
            analysis.confidence,
            analysis.risk_score,
            analysis.reasoning,
            json.dumps(analysis.recommended_actions),
            json.dumps(analysis.patterns),
            json.dumps(analysis.to_payload()),
            events_analyzed,
            requested_by,
        )
        log.info("threat_analysis_stored", analysis_id=analysis_id)
        return str(analysis_id)

    async def insert_alert(self, alert: SecurityAlert) -> str:
        """Append an unresolved alert."""
        alert_id = await self._fetchval(
            """
            INSERT INTO security_alerts (alert_type, severity, title, description, metadata)
            VALUES ($1, $2, $3, $4, $5::jsonb)
            RETURNING id::text
            """,
            alert.alert_type,
            alert.severity.value,
            alert.title,
            alert.description,
            json.dumps(alert.metadata),
        )
        log.info("security_alert_created", alert_id=alert_id, severity=alert.severity.value)
        return str(alert_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _ensure_schema(self) -> None:
        """Create output tables if they don't exist.

        A concurrent ``CREATE TABLE IF NOT EXISTS`` from another process can
        raise ``UniqueViolationError``; the table exists either way.
        """
        try:
            async with self._pool.acquire() as conn:  # type: ignore[union-attr]
                await conn.execute(_SCHEMA_SQL)
            log.info("threat_store_schema_ensured")
        except asyncpg.UniqueViolationError:
            log.info("threat_store_schema_ensured", note="concurrent creation resolved")
        except asyncpg.PostgresError as exc:
            log.error("threat_store_schema_creation_failed", error=str(exc))
            raise

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise PersistenceError("threat store is not initialized")
        return self._pool

    async def _fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        """Execute query and return all rows."""
        try:
            async with self._require_pool().acquire() as conn:
                result: list[asyncpg.Record] = await conn.fetch(query, *args)
                return result
        except (asyncpg.PostgresError, OSError) as exc:
            raise PersistenceError(str(exc)) from exc

    async def _fetchval(self, query: str, *args: Any) -> Any:
        """Execute query and return first column of first row."""
        try:
            async with self._require_pool().acquire() as conn:
                return await conn.fetchval(query, *args)
        except (asyncpg.PostgresError, OSError) as exc:
            raise PersistenceError(str(exc)) from exc

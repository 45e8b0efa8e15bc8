"""Tests for the PostgreSQL threat store (asyncpg mocked)."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from perimeter_ai.errors import PersistenceError
from perimeter_ai.threats.models import SecurityAlert, ThreatAnalysis
from perimeter_ai.threats.store import ThreatStore


@pytest.fixture
def conn():
    return AsyncMock()


@pytest.fixture
def store(conn):
    pool = MagicMock()
    pool.acquire.return_value.__aenter__.return_value = conn
    pool.close = AsyncMock()
    store = ThreatStore(dsn="postgresql://u:p@localhost:5432/test")
    store._pool = pool
    return store


def _row(**overrides) -> dict:
    row = {
        "id": "5f0c1a9e-0000-4000-8000-000000000001",
        "user_id": None,
        "event_type": "failed_login",
        "severity": "medium",
        "details": json.dumps({"attempts": 4}),
        "created_at": datetime(2026, 4, 1, 8, 0, tzinfo=UTC),
        "ip_address": "198.51.100.4",
        "user_agent": "curl/8.0",
    }
    row.update(overrides)
    return row


def _analysis() -> ThreatAnalysis:
    return ThreatAnalysis.model_validate(
        {
            "threatLevel": "high",
            "threatType": "brute_force",
            "confidence": 80,
            "reasoning": "Repeated failures against one account.",
            "recommendedActions": ["Lock account"],
            "patterns": ["repeated_failures"],
            "riskScore": 70,
        }
    )


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_initialize_creates_pool_and_schema(self, conn):
        pool = MagicMock()
        pool.acquire.return_value.__aenter__.return_value = conn
        with patch(
            "perimeter_ai.threats.store.asyncpg.create_pool", AsyncMock(return_value=pool)
        ) as create_pool:
            store = ThreatStore(dsn="postgresql://u:p@db/test")
            await store.initialize()

        create_pool.assert_awaited_once_with(dsn="postgresql://u:p@db/test")
        schema_sql = conn.execute.await_args.args[0]
        assert "CREATE TABLE IF NOT EXISTS ai_threat_analyses" in schema_sql
        assert "CREATE TABLE IF NOT EXISTS security_alerts" in schema_sql

    @pytest.mark.asyncio
    async def test_close(self, store):
        pool = store._pool
        await store.close()
        pool.close.assert_awaited_once()
        assert store._pool is None

    @pytest.mark.asyncio
    async def test_uninitialized_store_raises_persistence_error(self):
        with pytest.raises(PersistenceError):
            await ThreatStore(dsn="postgresql://x").fetch_recent_events(10)


class TestFetchRecentEvents:
    @pytest.mark.asyncio
    async def test_newest_first_with_limit(self, store, conn):
        conn.fetch.return_value = [_row(), _row(id="e2", severity="high")]
        events = await store.fetch_recent_events(50)

        query, limit = conn.fetch.await_args.args
        assert "ORDER BY created_at DESC" in query
        assert limit == 50
        assert [e.id for e in events] == ["5f0c1a9e-0000-4000-8000-000000000001", "e2"]
        assert events[0].details == {"attempts": 4}

    @pytest.mark.asyncio
    async def test_malformed_row(self, store, conn):
        conn.fetch.return_value = [_row(event_type=None)]
        with pytest.raises(PersistenceError):
            await store.fetch_recent_events(5)

    @pytest.mark.asyncio
    async def test_driver_error(self, store, conn):
        conn.fetch.side_effect = OSError("connection reset by peer")
        with pytest.raises(PersistenceError):
            await store.fetch_recent_events(5)


class TestAppends:
    @pytest.mark.asyncio
    async def test_insert_analysis(self, store, conn):
        conn.fetchval.return_value = "a1"
        analysis = _analysis()
        analysis_id = await store.insert_analysis(
            analysis, analysis_type="manual", events_analyzed=12, requested_by="admin-7"
        )

        assert analysis_id == "a1"
        query, *args = conn.fetchval.await_args.args
        assert "INSERT INTO ai_threat_analyses" in query
        assert args[0] == "manual"
        assert args[1] == "high"
        assert args[3] == 80
        assert json.loads(args[6]) == ["Lock account"]
        assert json.loads(args[8]) == analysis.to_payload()
        assert args[9:] == [12, "admin-7"]

    @pytest.mark.asyncio
    async def test_insert_alert(self, store, conn):
        conn.fetchval.return_value = "alert-9"
        alert = SecurityAlert.from_analysis(_analysis())
        assert await store.insert_alert(alert) == "alert-9"

        query, *args = conn.fetchval.await_args.args
        assert "INSERT INTO security_alerts" in query
        assert "UPDATE" not in query
        assert args[0] == "ai_detected_brute_force"
        assert args[1] == "high"
        assert json.loads(args[4])["aiGenerated"] is True

    @pytest.mark.asyncio
    async def test_write_failure(self, store, conn):
        conn.fetchval.side_effect = OSError("broken pipe")
        with pytest.raises(PersistenceError):
            await store.insert_alert(SecurityAlert.from_analysis(_analysis()))

"""Pytest fixtures for Perimeter AI tests."""

import json
import os
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from perimeter_ai.threats.reasoning import ReasoningResult


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Set up test environment variables before any imports.

    Settings must be constructible without a real secret store or database.
    """
    os.environ.setdefault("JWT_SECRET", "test-jwt-secret-placeholder")
    os.environ.setdefault("OPENAI_API_KEY", "test-openai-key-placeholder")

    from perimeter_ai.config import get_settings

    get_settings.cache_clear()

    yield

    get_settings.cache_clear()


@pytest.fixture
def mock_settings():
    """Settings for testing, independent of the process environment."""
    from perimeter_ai.config import Settings

    return Settings(
        environment="test",
        log_level="DEBUG",
        jwt_secret="test-jwt-secret",
        openai_api_key="test-openai-key",
        anthropic_api_key="test-anthropic-key",
        ALLOWED_ORIGINS="https://app.example.com",
    )


@pytest.fixture
def analysis_payload():
    """Factory for a well-formed analysis as the reasoning service returns it."""

    def _make(**overrides) -> dict:
        payload = {
            "threatLevel": "low",
            "threatType": "routine_activity",
            "confidence": 85,
            "reasoning": "Normal login activity from known addresses.",
            "recommendedActions": ["Continue monitoring"],
            "patterns": ["regular_logins"],
            "riskScore": 10,
        }
        payload.update(overrides)
        return payload

    return _make


@pytest.fixture
def reasoning_reply():
    """Factory wrapping a reply body (dict or raw text) in a ReasoningResult."""

    def _make(content: str | dict) -> ReasoningResult:
        if isinstance(content, dict):
            content = json.dumps(content)
        return ReasoningResult(
            content=content, provider="openai", model="test-model", latency_ms=12.0
        )

    return _make


@pytest.fixture
def make_event():
    """Factory for a security event as supplied by a caller."""

    def _make(index: int = 0, **overrides) -> dict:
        event = {
            "id": f"evt-{index}",
            "user_id": f"user-{index}",
            "event_type": "failed_login",
            "severity": "medium",
            "details": {"attempt": index},
            "created_at": datetime(2026, 1, 1, 12, 0, tzinfo=UTC).isoformat(),
            "ip_address": "203.0.113.7",
        }
        event.update(overrides)
        return event

    return _make


@pytest.fixture
def mock_reasoning(analysis_payload, reasoning_reply):
    """Reasoning client that returns a low-severity analysis."""
    client = AsyncMock()
    client.complete = AsyncMock(return_value=reasoning_reply(analysis_payload()))
    return client


@pytest.fixture
def mock_store():
    """Threat store whose reads return nothing and whose writes succeed."""
    store = AsyncMock()
    store.fetch_recent_events = AsyncMock(return_value=[])
    store.insert_analysis = AsyncMock(return_value="analysis-1")
    store.insert_alert = AsyncMock(return_value="alert-1")
    return store

"""Tests for settings loading."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from perimeter_ai.config import Settings, get_settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("ALLOWED_ORIGINS", "PRIVILEGED_ROLES", "ENVIRONMENT", "REASONING_PROVIDER"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)
        assert settings.environment == "production"
        assert settings.is_development is False
        assert settings.allowed_origins == []
        assert settings.privileged_roles == frozenset({"admin", "super_admin"})
        assert settings.reasoning_provider == "openai"
        assert settings.threat_max_output_tokens == 2000
        assert settings.threat_event_limit == 50
        assert settings.threat_rate_limit_max == 10
        assert settings.upload_rate_limit_max == 5
        assert settings.max_upload_bytes == 10 * 1024 * 1024

    def test_csv_fields_from_env(self, monkeypatch):
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example.com, https://b.example.com,")
        monkeypatch.setenv("PRIVILEGED_ROLES", "admin, security_officer")
        settings = Settings(_env_file=None)
        assert settings.allowed_origins == ["https://a.example.com", "https://b.example.com"]
        assert settings.privileged_roles == frozenset({"admin", "security_officer"})

    def test_dev_origins_default(self):
        settings = Settings(_env_file=None)
        assert "http://localhost:5173" in settings.dev_origins
        assert "http://127.0.0.1:3000" in settings.dev_origins

    def test_reasoning_provider_normalised(self):
        assert Settings(_env_file=None, reasoning_provider="Claude").reasoning_provider == "claude"

    def test_reasoning_provider_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, reasoning_provider="gemini")

    @pytest.mark.parametrize(
        "field", ["scheduled_analysis_interval_seconds", "threat_max_output_tokens"]
    )
    def test_positive_fields(self, field):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: 0})

    def test_secret_not_in_repr(self):
        settings = Settings(_env_file=None, jwt_secret="super-secret-value")
        assert "super-secret-value" not in repr(settings)
        assert settings.jwt_secret.get_secret_value() == "super-secret-value"

    def test_log_file_path(self):
        settings = Settings(_env_file=None, log_directory="/var/log/app", log_file_prefix="edge")
        assert settings.log_file_path == "/var/log/app/edge.log"


class TestGetSettings:
    def test_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()

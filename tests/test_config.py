"""
Configuration Tests

Unit tests for environment-driven settings.
"""

import pytest
from pydantic import ValidationError

from offline_resilience.core.config import Settings, clear_settings_cache, get_settings


class TestSettings:
    """Test cases for Settings class."""

    def test_defaults(self, settings):
        """Test offline-first defaults."""
        assert settings.CACHE_CAPACITY == 1000
        assert settings.RETRY_MAX_RETRIES == 3
        assert settings.RETRY_FLUSH_INTERVAL_SECONDS == 30.0
        assert settings.CACHE_SWEEP_INTERVAL_SECONDS == 300.0
        assert settings.allowed_network_operations == [
            "content_updates",
            "signature_verification",
        ]
        assert settings.is_test is True

    def test_operation_ttls(self, settings):
        assert settings.ttl_for("get_subjects") == 86400
        assert settings.ttl_for("get_questions") == 43200
        assert settings.ttl_for("unknown_operation") == settings.CACHE_DEFAULT_TTL_SECONDS

    def test_environment_override(self, monkeypatch):
        """Test that OFFLINE_ prefixed variables override defaults."""
        monkeypatch.setenv("OFFLINE_CACHE_CAPACITY", "25")
        monkeypatch.setenv("OFFLINE_PRELOAD_SUBJECTS", "Mathematics, Science")

        settings = Settings(_env_file=None)

        assert settings.CACHE_CAPACITY == 25
        assert settings.preload_subjects == ["Mathematics", "Science"]

    def test_log_level_normalized(self):
        settings = Settings(_env_file=None, LOG_LEVEL="debug")

        assert settings.LOG_LEVEL == "DEBUG"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"ENVIRONMENT": "staging"},
            {"LOG_LEVEL": "verbose"},
            {"CACHE_CAPACITY": -1},
            {"RETRY_MAX_RETRIES": 0},
            {"ALLOWED_NETWORK_OPERATIONS": "content_updates,analytics"},
        ],
    )
    def test_invalid_values(self, overrides):
        """Test settings validation."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **overrides)

    def test_allowed_operations_can_be_narrowed(self):
        settings = Settings(_env_file=None, ALLOWED_NETWORK_OPERATIONS="content_updates")

        assert settings.allowed_network_operations == ["content_updates"]

    def test_get_settings_is_cached(self, monkeypatch):
        first = get_settings()
        assert get_settings() is first

        monkeypatch.setenv("OFFLINE_RETRY_MAX_RETRIES", "5")
        clear_settings_cache()

        assert get_settings() is not first
        assert get_settings().RETRY_MAX_RETRIES == 5

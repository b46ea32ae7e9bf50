"""Tests for vaultmirror.core.config module."""

import logging

import pytest

import vaultmirror.core.config as config


class TestEnvHelpers:
    """Tests for environment variable helpers."""

    def test_get_env_returns_value(self, monkeypatch):
        """get_env returns environment variable value."""
        monkeypatch.setenv("TEST_VAR", "test_value")

        assert config.get_env("TEST_VAR") == "test_value"

    def test_get_env_returns_default(self, monkeypatch):
        """get_env returns default when var not set."""
        monkeypatch.delenv("NONEXISTENT_VAR", raising=False)

        assert config.get_env("NONEXISTENT_VAR", "default") == "default"

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("42", 42),
            ("not_a_number", 99),
            (None, 123),
        ],
    )
    def test_get_env_int(self, monkeypatch, value, expected):
        """get_env_int parses or falls back to default."""
        if value is None:
            monkeypatch.delenv("INT_VAR", raising=False)
        else:
            monkeypatch.setenv("INT_VAR", value)

        assert config.get_env_int("INT_VAR", expected) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("1.5", 1.5),
            ("30", 30.0),
            ("soon", 9.0),
            (None, 9.0),
        ],
    )
    def test_get_env_float(self, monkeypatch, value, expected):
        """get_env_float parses or falls back to default."""
        if value is None:
            monkeypatch.delenv("FLOAT_VAR", raising=False)
        else:
            monkeypatch.setenv("FLOAT_VAR", value)

        assert config.get_env_float("FLOAT_VAR", 9.0) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("true", True),
            ("True", True),
            ("1", True),
            ("yes", True),
            ("false", False),
            ("0", False),
            ("no", False),
        ],
    )
    def test_get_env_bool_parses_known_values(self, monkeypatch, value, expected):
        """get_env_bool parses known values."""
        monkeypatch.setenv("BOOL_VAR", value)

        assert config.get_env_bool("BOOL_VAR") is expected

    @pytest.mark.parametrize("default", [True, False])
    def test_get_env_bool_default(self, monkeypatch, default):
        """get_env_bool returns default for unknown values."""
        monkeypatch.setenv("BOOL_VAR", "maybe")

        assert config.get_env_bool("BOOL_VAR", default) is default


class TestValidateSyncEnvironment:
    """Tests for validate_sync_environment."""

    def test_missing_credentials(self, monkeypatch):
        """Every missing credential is named."""
        monkeypatch.setattr(config, "GOOGLE_CLIENT_ID", "id")
        monkeypatch.setattr(config, "GOOGLE_CLIENT_SECRET", None)
        monkeypatch.setattr(config, "GOOGLE_REFRESH_TOKEN", "")

        is_valid, message = config.validate_sync_environment()

        assert is_valid is False
        assert "GOOGLE_CLIENT_SECRET" in message
        assert "GOOGLE_REFRESH_TOKEN" in message
        assert "GOOGLE_CLIENT_ID" not in message

    def test_success(self, monkeypatch):
        """Validation succeeds with all credentials."""
        monkeypatch.setattr(config, "GOOGLE_CLIENT_ID", "id")
        monkeypatch.setattr(config, "GOOGLE_CLIENT_SECRET", "secret")
        monkeypatch.setattr(config, "GOOGLE_REFRESH_TOKEN", "token")

        assert config.validate_sync_environment() == (True, "")


class TestDefaults:
    """Tests for configuration defaults."""

    def test_tuning_values_are_positive(self):
        """Sync tuning values are usable."""
        assert config.DRIVE_FETCH_CONCURRENCY >= 1
        assert config.SYNC_CACHE_TTL_SECONDS >= 0
        assert config.SEARCH_TEXT_MAX_CHARS > 0

    def test_setup_logging_returns_logger(self):
        """setup_logging returns the config logger."""
        logger = config.setup_logging()

        assert isinstance(logger, logging.Logger)
        assert logger.name == "vaultmirror.core.config"

"""Tests for configuration management."""

import pytest
from pydantic import ValidationError

from lapublica_backup.config import (
    ApiToken,
    Settings,
    get_settings,
    reset_settings,
    set_settings,
)


class TestSettings:
    """Test Settings class."""

    def test_default_settings(self):
        """Test default configuration values."""
        settings = Settings()

        assert settings.database_path.endswith("lapublica.db")
        assert settings.max_records_default == 1000
        assert settings.backup_version == "2.0.0"
        assert settings.platform_label == "La Pública - Backup Granular"
        assert settings.import_concurrency == 8
        assert settings.api_prefix == "/api/granular-backup"
        assert settings.api_tokens == []
        assert settings.auth_disabled is False
        assert settings.log_level == "INFO"

    def test_env_variable_override(self, monkeypatch):
        """Test that environment variables override defaults."""
        monkeypatch.setenv("LAPUBLICA_BACKUP_DATABASE_PATH", "/env/backup.db")
        monkeypatch.setenv("LAPUBLICA_BACKUP_MAX_RECORDS_DEFAULT", "250")
        monkeypatch.setenv("LAPUBLICA_BACKUP_AUTH_DISABLED", "true")

        settings = Settings()

        assert settings.database_path == "/env/backup.db"
        assert settings.max_records_default == 250
        assert settings.auth_disabled is True

    def test_api_tokens_from_json_env(self, monkeypatch):
        """Test that tokens are read as JSON from the environment."""
        monkeypatch.setenv(
            "LAPUBLICA_BACKUP_API_TOKENS",
            '[{"token": "secret-token-1", "email": "admin@lapublica.cat"}]',
        )

        settings = Settings()

        assert settings.api_tokens == [
            ApiToken(token="secret-token-1", email="admin@lapublica.cat", role="admin")
        ]

    def test_env_prefix(self, monkeypatch):
        """Test that the LAPUBLICA_BACKUP_ prefix is required."""
        monkeypatch.setenv("IMPORT_CONCURRENCY", "2")

        settings = Settings()

        assert settings.import_concurrency == 8

    def test_default_above_limit_rejected(self):
        """Test cross-field validation of the record caps."""
        with pytest.raises(ValidationError, match="max_records_default"):
            Settings(max_records_default=100, max_records_limit=10)

    def test_duplicate_tokens_rejected(self):
        with pytest.raises(ValidationError, match="duplicate"):
            Settings(
                api_tokens=[
                    ApiToken(token="same-token-1"),
                    ApiToken(token="same-token-1", role="user"),
                ]
            )

    def test_short_token_rejected(self):
        with pytest.raises(ValidationError):
            ApiToken(token="short")

    @pytest.mark.parametrize("value", [0, 65])
    def test_import_concurrency_bounds(self, value):
        with pytest.raises(ValidationError):
            Settings(import_concurrency=value)


class TestSettingsSingleton:
    """Test the module-level settings instance."""

    def teardown_method(self):
        reset_settings()

    def test_get_settings_is_cached(self):
        reset_settings()
        assert get_settings() is get_settings()

    def test_set_settings(self):
        custom = Settings(database_path=":memory:")
        set_settings(custom)
        assert get_settings() is custom

    def test_reset_settings(self):
        first = get_settings()
        reset_settings()
        assert get_settings() is not first

"""Configuration for the backup service."""

import logging

from lapublica_backup.config.settings import ApiToken, Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Process-wide settings, loaded from the environment on first use
_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first access."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Replace the process-wide settings, e.g. with test values."""
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Drop the cached settings so the environment is read again."""
    global _settings
    _settings = None


def configure_logging(settings: Settings) -> None:
    """Configure root logging from ``settings.log_level``.

    Args:
        settings: Application settings
    """
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)


__all__ = [
    "ApiToken",
    "Settings",
    "configure_logging",
    "get_settings",
    "reset_settings",
    "set_settings",
]

"""Application settings management using Pydantic Settings."""

from pathlib import Path
from typing import Literal, Self

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_default_db_path() -> str:
    """Get default database path in the working directory."""
    return str(Path.cwd() / "data" / "lapublica.db")


class ApiToken(BaseModel):
    """Bearer token accepted by the backup API."""

    token: str = Field(min_length=8)
    email: str | None = Field(
        default=None, description="Email of the platform user behind this token"
    )
    role: Literal["admin", "user"] = "admin"


class Settings(BaseSettings):
    """Application configuration settings.

    All settings can be configured via environment variables with the
    prefix `LAPUBLICA_BACKUP_`. For example, `LAPUBLICA_BACKUP_DATABASE_PATH`.
    Complex values such as `api_tokens` are given as JSON.
    """

    # Database
    database_path: str = Field(
        default_factory=_get_default_db_path,
        description="SQLite database file path",
    )

    # Export
    max_records_default: int = Field(
        default=1000,
        ge=1,
        description="Per-kind record cap when the selection does not give one",
    )
    max_records_limit: int = Field(
        default=50_000,
        ge=1,
        description="Upper bound accepted for maxRecords",
    )
    backup_version: str = Field(default="2.0.0", description="Backup document version tag")
    platform_label: str = Field(
        default="La Pública - Backup Granular",
        description="Human label stamped on exported documents",
    )

    # Import
    import_concurrency: int = Field(
        default=8,
        ge=1,
        le=64,
        description="Concurrent records per category depth tier",
    )

    # API
    api_prefix: str = Field(default="/api/granular-backup", description="Router prefix")
    api_tokens: list[ApiToken] = Field(
        default_factory=list, description="Accepted bearer tokens"
    )
    auth_disabled: bool = Field(
        default=False, description="Treat every request as an administrator"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    model_config = SettingsConfigDict(
        env_prefix="LAPUBLICA_BACKUP_", env_file=".env", env_file_encoding="utf-8"
    )

    @model_validator(mode="after")
    def validate_limits(self) -> Self:
        """Validate cross-field limits."""
        if self.max_records_default > self.max_records_limit:
            raise ValueError(
                f"max_records_default ({self.max_records_default}) "
                f"must be <= max_records_limit ({self.max_records_limit})"
            )
        tokens = [t.token for t in self.api_tokens]
        if len(tokens) != len(set(tokens)):
            raise ValueError("api_tokens contains duplicate tokens")
        return self

"""Validation utilities for inbound snapshot fields.

Snapshots come from files an administrator uploads, so every field is
checked here before it reaches a repository.
"""

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from lapublica_backup.exceptions import ValidationError

# Keys that describe a stored row rather than record content
SNAPSHOT_META_KEYS = frozenset({"_id", "id", "__v", "createdAt", "updatedAt"})


def require_text(
    record: Mapping[str, Any],
    field_name: str,
    max_length: int | None = None,
) -> str:
    """Return a required, non-blank string field.

    Args:
        record: Snapshot being imported
        field_name: Name of the field
        max_length: Optional maximum length after stripping

    Returns:
        The stripped value

    Raises:
        ValidationError: If the field is missing, blank or too long
    """
    value = record.get(field_name)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} must be a non-empty string")

    value = value.strip()
    if max_length is not None and len(value) > max_length:
        raise ValidationError(
            f"{field_name} exceeds maximum length of {max_length:,} characters "
            f"(got {len(value):,})"
        )
    return value


def optional_text(record: Mapping[str, Any], field_name: str) -> str | None:
    """Return a stripped string field, or None when absent or blank."""
    value = record.get(field_name)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a snapshot timestamp.

    Accepts datetimes and ISO 8601 strings, including the ``Z`` suffix
    JavaScript clients emit. Naive values are taken as UTC.

    Args:
        value: Raw value

    Returns:
        Aware datetime, or None when the value is missing or unparseable
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def content_fields(record: Mapping[str, Any], *exclude: str) -> dict[str, Any]:
    """Copy of a snapshot without row metadata and the excluded keys."""
    skipped = SNAPSHOT_META_KEYS | set(exclude)
    return {key: value for key, value in record.items() if key not in skipped}


def as_list(value: Any, field_name: str) -> list[Any]:
    """Return a list field, treating a missing value as empty.

    Raises:
        ValidationError: If the value is present but not a list
    """
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{field_name} must be a list")
    return value

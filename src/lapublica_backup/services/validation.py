"""Structural validation of inbound backup documents."""

from collections.abc import Mapping
from typing import Any

from lapublica_backup.exceptions import InvalidBackupError
from lapublica_backup.models.backup import EntityKind

INVALID_BACKUP_MESSAGE = "Dades de backup invàlides"


def validate_backup_payload(payload: Any) -> Mapping[str, Any]:
    """Check a backup document before anything is written.

    Args:
        payload: Inbound ``backupData`` value

    Returns:
        The document's ``data`` mapping

    Raises:
        InvalidBackupError: If the payload is not an object, lacks a ``data``
            mapping, or holds a non-list value for a known kind
    """
    if payload is None or not isinstance(payload, Mapping):
        raise InvalidBackupError(INVALID_BACKUP_MESSAGE)

    data = payload.get("data")
    if data is None or not isinstance(data, Mapping):
        raise InvalidBackupError(INVALID_BACKUP_MESSAGE)

    for kind in EntityKind:
        value = data.get(kind.value)
        if value is not None and not isinstance(value, list):
            raise InvalidBackupError(f"{INVALID_BACKUP_MESSAGE}: {kind.value} must be a list")

    return data

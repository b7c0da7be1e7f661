"""Data models for the backup engine."""

from lapublica_backup.models.backup import (
    BackupDocument,
    EntityKind,
    ImportOptions,
    ImportResult,
    KindCounters,
    PreviewResult,
    SelectionPolicy,
)
from lapublica_backup.models.category import Category, CategoryKey, CategoryType
from lapublica_backup.models.record import StoredRecord

__all__ = [
    # Backup models
    "BackupDocument",
    "EntityKind",
    "ImportOptions",
    "ImportResult",
    "KindCounters",
    "PreviewResult",
    "SelectionPolicy",
    # Category models
    "Category",
    "CategoryKey",
    "CategoryType",
    # Storage
    "StoredRecord",
]

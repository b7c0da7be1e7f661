"""Persistence layer."""

from lapublica_backup.db.database import Database

__all__ = ["Database"]

"""Stored document model."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class StoredRecord(BaseModel):
    """One row of a collection table.

    ``fields`` holds the indexed columns (natural keys and references),
    ``document`` holds every other field of the record.
    """

    id: str
    created_at: datetime
    updated_at: datetime
    fields: dict[str, Any] = Field(default_factory=dict)
    document: dict[str, Any] = Field(default_factory=dict)

"""Category models."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class CategoryType(str, Enum):
    """Content type a category classifies."""

    COMPANY = "company"
    JOB = "job"
    ANNOUNCEMENT = "announcement"
    ADVISORY = "advisory"
    BLOG = "blog"


class Category(BaseModel):
    """Hierarchical content category."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = Field(min_length=2, max_length=50)
    description: str | None = Field(default=None, max_length=200)
    color: str = "#3B82F6"
    icon: str = "Tag"
    type: CategoryType
    parent_id: str | None = None
    is_active: bool = True
    order: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("color", "icon", mode="before")
    @classmethod
    def empty_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None or value == "":
            return cls.model_fields[info.field_name].default
        return value


class CategoryKey(BaseModel):
    """Natural key of a category: name, type and the key of its parent.

    Identifiers differ between database instances, so hierarchy
    references inside a backup document use this form.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    type: CategoryType
    parent: "CategoryKey | None" = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return value.strip()

    def chain(self) -> list["CategoryKey"]:
        """Keys from the root down to this one."""
        keys: list[CategoryKey] = []
        node: CategoryKey | None = self
        while node is not None:
            keys.append(node)
            node = node.parent
        keys.reverse()
        return keys

    @property
    def depth(self) -> int:
        """Number of ancestors named by this key."""
        return len(self.chain()) - 1

    def identity(self) -> tuple[tuple[str, str], ...]:
        """Hashable, case-insensitive identity of the whole chain."""
        return tuple((key.name.casefold(), key.type.value) for key in self.chain())

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


CategoryKey.model_rebuild()

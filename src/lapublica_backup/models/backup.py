"""Backup selection, document and result models."""

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class EntityKind(str, Enum):
    """Backup-eligible record categories, valued by their wire names."""

    USERS = "users"
    POSTS = "posts"
    COMPANIES = "companies"
    GROUPS = "groups"
    GROUP_POSTS = "groupPosts"
    FORUMS = "forums"
    FORUM_POSTS = "forumPosts"
    JOB_OFFERS = "jobOffers"
    ANNOUNCEMENTS = "announcements"
    ADVISORIES = "advisories"
    BLOGS = "blogs"
    CATEGORIES = "categories"
    GROUP_CATEGORIES = "groupCategories"
    FORUM_CATEGORIES = "forumCategories"

    @property
    def include_flag(self) -> str:
        """Selection flag name, e.g. ``includeGroupPosts``."""
        return "include" + self.value[0].upper() + self.value[1:]

    @property
    def import_flag(self) -> str:
        """Import option flag name, e.g. ``importGroupPosts``."""
        return "import" + self.value[0].upper() + self.value[1:]


def _as_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _kinds_from_flags(data: Mapping[str, Any], flag_name: str) -> list[EntityKind]:
    return [kind for kind in EntityKind if _as_flag(data.get(getattr(kind, flag_name)))]


class SelectionPolicy(BaseModel):
    """What to export and how to filter it.

    Accepts the flat wire form (``includeUsers``, ``dateFrom``, ...) as
    well as a ``kinds`` collection.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    kinds: frozenset[EntityKind] = Field(default_factory=frozenset)
    date_from: datetime | None = Field(default=None, alias="dateFrom")
    date_to: datetime | None = Field(default=None, alias="dateTo")
    author_id: str | None = Field(default=None, alias="authorId")
    category_filter: tuple[str, ...] = Field(default=(), alias="categoryFilter")
    max_records: int = Field(default=1000, ge=1, alias="maxRecords")

    @model_validator(mode="before")
    @classmethod
    def collect_include_flags(cls, data: Any) -> Any:
        """Translate ``includeX`` flags into ``kinds``."""
        if isinstance(data, Mapping) and "kinds" not in data:
            data = {**data, "kinds": _kinds_from_flags(data, "include_flag")}
        return data

    @field_validator("date_from", "date_to", "author_id", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("date_from", "date_to")
    @classmethod
    def assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("category_filter", mode="before")
    @classmethod
    def split_category_filter(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        return value

    def includes(self, kind: EntityKind) -> bool:
        """Check whether a kind is selected."""
        return kind in self.kinds

    def with_kinds(self, kinds: Iterable[EntityKind]) -> "SelectionPolicy":
        """Copy of this policy selecting the given kinds."""
        return self.model_copy(update={"kinds": frozenset(kinds)})

    def to_wire(self) -> dict[str, Any]:
        """Serialize back to the flat wire form."""
        wire: dict[str, Any] = {kind.include_flag: kind in self.kinds for kind in EntityKind}
        wire.update(
            {
                "dateFrom": self.date_from.isoformat() if self.date_from else None,
                "dateTo": self.date_to.isoformat() if self.date_to else None,
                "authorId": self.author_id,
                "categoryFilter": list(self.category_filter) or None,
                "maxRecords": self.max_records,
            }
        )
        return wire


class ImportOptions(BaseModel):
    """Which kinds to import and whether existing records get replaced."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    kinds: frozenset[EntityKind] = Field(default_factory=frozenset)
    replace_existing: bool = Field(default=False, alias="replaceExisting")

    @model_validator(mode="before")
    @classmethod
    def collect_import_flags(cls, data: Any) -> Any:
        """Translate ``importX`` flags into ``kinds``."""
        if data is None:
            return {}
        if isinstance(data, Mapping) and "kinds" not in data:
            data = {**data, "kinds": _kinds_from_flags(data, "import_flag")}
        return data

    @field_validator("replace_existing", mode="before")
    @classmethod
    def parse_flag(cls, value: Any) -> bool:
        return _as_flag(value)

    def to_wire(self) -> dict[str, Any]:
        """Serialize back to the flat wire form."""
        wire: dict[str, Any] = {"replaceExisting": self.replace_existing}
        wire.update({kind.import_flag: kind in self.kinds for kind in EntityKind})
        return wire


class KindCounters(BaseModel):
    """Reconciliation outcome tally for one entity kind."""

    created: int = Field(default=0, ge=0)
    updated: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    errors: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.created + self.updated + self.skipped + self.errors


class ImportResult(BaseModel):
    """Aggregated per-kind outcome of one import."""

    imported_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    results: dict[EntityKind, KindCounters] = Field(default_factory=dict)

    def results_to_wire(self) -> dict[str, dict[str, int]]:
        """Results keyed by wire kind name."""
        return {kind.value: counters.model_dump() for kind, counters in self.results.items()}


class BackupDocument(BaseModel):
    """Portable, versioned export of selected collections."""

    model_config = ConfigDict(populate_by_name=True)

    version: str
    export_date: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="exportDate"
    )
    platform: str
    options: dict[str, Any] = Field(default_factory=dict)
    statistics: dict[str, int] = Field(default_factory=dict)
    data: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)

    @classmethod
    def assemble(
        cls,
        data: Mapping[EntityKind, list[dict[str, Any]]],
        version: str,
        platform: str,
        options: dict[str, Any] | None = None,
    ) -> "BackupDocument":
        """Build a document whose statistics are derived from ``data``.

        Args:
            data: Snapshots per included kind
            version: Engine version tag
            platform: Human platform label
            options: Selection echoed into the document

        Returns:
            Backup document
        """
        ordered = {kind.value: list(data[kind]) for kind in EntityKind if kind in data}
        return cls(
            version=version,
            platform=platform,
            options=options or {},
            data=ordered,
            statistics={name: len(records) for name, records in ordered.items()},
        )

    @property
    def filename(self) -> str:
        """Download filename for this document."""
        return f"la-publica-backup-{self.export_date.date().isoformat()}.json"

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class PreviewResult(BaseModel):
    """Count-only answer to "how much would be exported"."""

    model_config = ConfigDict(populate_by_name=True)

    statistics: dict[str, int] = Field(default_factory=dict)
    total_records: int = Field(default=0, ge=0, alias="totalRecords")
    filters: dict[str, Any] = Field(default_factory=dict)

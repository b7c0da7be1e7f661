"""Per entity-kind export and reconciliation strategies.

Each strategy knows how to read its collection for an export (filters,
snapshot shape) and how to reconcile one inbound snapshot against the
target store (reference resolution, natural key, create, update).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from lapublica_backup.db.database import to_storage_timestamp
from lapublica_backup.db.repositories import CategoryTree, DocumentRepository, Store
from lapublica_backup.exceptions import UnresolvedReferenceError, ValidationError
from lapublica_backup.models.backup import EntityKind, SelectionPolicy
from lapublica_backup.models.category import Category, CategoryKey, CategoryType
from lapublica_backup.models.record import StoredRecord
from lapublica_backup.services.reference_resolver import ReferenceResolver
from lapublica_backup.utils.validators import (
    as_list,
    content_fields,
    optional_text,
    parse_timestamp,
    require_text,
)


class Outcome(str, Enum):
    """Reconciliation decision for one record."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    ERRORS = "errors"


@dataclass
class ImportContext:
    """Request-scoped state shared by the reconcilers of one import."""

    references: ReferenceResolver
    replace_existing: bool = False


@dataclass
class PreparedRecord:
    """Inbound snapshot validated and translated to target-store values."""

    fields: dict[str, Any]
    document: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    label: str = ""


class EntityStrategy(ABC):
    """Base strategy for one entity kind.

    Subclasses set the class attributes describing which export filters
    apply and implement ``prepare`` and ``match_existing``.
    """

    kind: EntityKind
    depends_on: tuple[EntityKind, ...] = ()
    # Column compared against SelectionPolicy.author_id
    author_column: ClassVar[str | None] = None
    date_filtered: ClassVar[bool] = True
    category_filtered: ClassVar[bool] = False
    # Author filter applies through the companies the author owns
    company_scoped: ClassVar[bool] = False
    active_only: ClassVar[bool] = False

    def __init__(self, store: Store, repository: DocumentRepository) -> None:
        """Initialize strategy.

        Args:
            store: Store holding every repository
            repository: Repository of this strategy's collection
        """
        self.store = store
        self.repository = repository

    # Export

    async def selection_clauses(self, policy: SelectionPolicy) -> tuple[list[str], list[Any]]:
        """SQL conditions selecting this kind's records for a policy.

        Args:
            policy: Selection policy

        Returns:
            Conditions and their parameters
        """
        clauses: list[str] = []
        params: list[Any] = []

        if self.active_only:
            clauses.append("is_active = 1")

        if self.date_filtered:
            if policy.date_from:
                clauses.append("created_at >= ?")
                params.append(to_storage_timestamp(policy.date_from))
            if policy.date_to:
                clauses.append("created_at <= ?")
                params.append(to_storage_timestamp(policy.date_to))

        if policy.author_id:
            if self.author_column:
                clauses.append(f"{self.author_column} = ?")
                params.append(policy.author_id)
            elif self.company_scoped:
                company_ids = await self.store.companies.find_ids(
                    ["owner_id = ?"], [policy.author_id]
                )
                if company_ids:
                    clauses.append(
                        f"company_id IN ({', '.join('?' for _ in company_ids)})"
                    )
                    params.extend(company_ids)
                else:
                    clauses.append("0 = 1")

        if self.category_filtered and policy.category_filter:
            clauses.append(
                f"category_id IN ({', '.join('?' for _ in policy.category_filter)})"
            )
            params.extend(policy.category_filter)

        return clauses, params

    async def collect(
        self, policy: SelectionPolicy, references: ReferenceResolver
    ) -> list[dict[str, Any]]:
        """Snapshots of the records selected by a policy, oldest first."""
        clauses, params = await self.selection_clauses(policy)
        records = await self.repository.find(clauses, params, limit=policy.max_records)
        return [await self.to_snapshot(record, references) for record in records]

    async def count(self, policy: SelectionPolicy) -> int:
        """Number of snapshots ``collect`` would return for a policy."""
        clauses, params = await self.selection_clauses(policy)
        return min(await self.repository.count(clauses, params), policy.max_records)

    async def to_snapshot(
        self, record: StoredRecord, references: ReferenceResolver
    ) -> dict[str, Any]:
        """Portable copy of one stored record."""
        snapshot: dict[str, Any] = {"_id": record.id}
        snapshot.update(record.document)
        snapshot.update(await self.snapshot_fields(record, references))
        snapshot["createdAt"] = record.created_at.isoformat()
        snapshot["updatedAt"] = record.updated_at.isoformat()
        return snapshot

    async def snapshot_fields(
        self, record: StoredRecord, references: ReferenceResolver
    ) -> dict[str, Any]:
        """Snapshot values derived from indexed columns."""
        return {}

    # Import

    @abstractmethod
    async def prepare(self, record: dict[str, Any], ctx: ImportContext) -> PreparedRecord:
        """Validate a snapshot and translate its references to stored ids.

        Raises:
            ValidationError: If a field is invalid
            UnresolvedReferenceError: If a required reference is missing
        """
        pass

    @abstractmethod
    async def match_existing(self, prepared: PreparedRecord) -> str | None:
        """ID of the stored record sharing the natural key, if any."""
        pass

    async def create(self, prepared: PreparedRecord) -> str:
        return await self.repository.insert(
            prepared.fields, prepared.document, created_at=prepared.created_at
        )

    async def update(self, existing_id: str, prepared: PreparedRecord) -> None:
        """Overwrite the fields the snapshot carries, keeping the stored rest."""
        await self.repository.update(
            existing_id,
            self._present_fields(prepared),
            await self._merged_document(existing_id, prepared),
        )

    async def reconcile(self, record: Any, ctx: ImportContext) -> Outcome:
        """Apply the create / update / skip decision to one snapshot.

        Args:
            record: Inbound snapshot
            ctx: Import context

        Returns:
            Outcome of the decision

        Raises:
            ValidationError: If the snapshot fails field validation
            UnresolvedReferenceError: If a required reference is missing
        """
        if not isinstance(record, dict):
            raise ValidationError(f"{self.kind.value} snapshot must be an object")

        prepared = await self.prepare(record, ctx)
        existing_id = await self.match_existing(prepared)
        if existing_id is None:
            await self.create(prepared)
            return Outcome.CREATED
        if not ctx.replace_existing:
            return Outcome.SKIPPED
        await self.update(existing_id, prepared)
        return Outcome.UPDATED

    async def _match(self, clauses: list[str], params: list[Any]) -> str | None:
        existing = await self.repository.find_one(clauses, params)
        return existing.id if existing else None

    @staticmethod
    def _present_fields(prepared: PreparedRecord) -> dict[str, Any]:
        # Unset columns keep their stored values
        return {name: value for name, value in prepared.fields.items() if value is not None}

    async def _merged_document(
        self, existing_id: str, prepared: PreparedRecord
    ) -> dict[str, Any]:
        existing = await self.repository.find_by_id(existing_id)
        if existing is None:
            return prepared.document
        return {**existing.document, **prepared.document}


class UserStrategy(EntityStrategy):
    """Accounts, matched by email or username. Passwords never travel."""

    kind = EntityKind.USERS

    async def snapshot_fields(
        self, record: StoredRecord, references: ReferenceResolver
    ) -> dict[str, Any]:
        return {
            "email": record.fields["email"],
            "username": record.fields["username"],
            "role": record.fields["role"],
        }

    async def prepare(self, record: dict[str, Any], ctx: ImportContext) -> PreparedRecord:
        email = require_text(record, "email", max_length=254)
        if "@" not in email:
            raise ValidationError(f"Invalid email: {email}")
        username = optional_text(record, "username")
        return PreparedRecord(
            fields={
                "email": email.lower(),
                "username": username,
                "role": optional_text(record, "role"),
            },
            document=content_fields(record, "email", "username", "role", "password"),
            created_at=parse_timestamp(record.get("createdAt")),
            label=email,
        )

    async def match_existing(self, prepared: PreparedRecord) -> str | None:
        user = await self.store.users.find_by_email_or_username(
            prepared.fields["email"], prepared.fields["username"]
        )
        return user.id if user else None

    async def create(self, prepared: PreparedRecord) -> str:
        return await self.store.users.create_user(
            email=prepared.fields["email"],
            username=prepared.fields["username"],
            document=prepared.document,
            role=prepared.fields["role"] or "user",
            created_at=prepared.created_at,
        )

    async def update(self, existing_id: str, prepared: PreparedRecord) -> None:
        await self.store.users.update_profile(
            existing_id,
            self._present_fields(prepared),
            await self._merged_document(existing_id, prepared),
        )


class CategoryStrategy(EntityStrategy):
    """Hierarchical content categories, matched by name, type and parent.

    Snapshots carry the parent as a ``CategoryKey``. The import
    orchestrator feeds records tier by tier, so a parent from the same
    document is already stored when its children are prepared.
    """

    kind = EntityKind.CATEGORIES
    date_filtered = False
    active_only = True

    async def selection_clauses(self, policy: SelectionPolicy) -> tuple[list[str], list[Any]]:
        # Category collections ignore date and author filters
        return ["is_active = 1"], []

    async def collect(
        self, policy: SelectionPolicy, references: ReferenceResolver
    ) -> list[dict[str, Any]]:
        tree = await self.store.categories.load_tree()
        records = await self.repository.find(["is_active = 1"], [], limit=policy.max_records)
        return [self._category_snapshot(tree, record) for record in records]

    @staticmethod
    def _category_snapshot(tree: CategoryTree, record: StoredRecord) -> dict[str, Any]:
        category = tree.nodes[record.id]
        parent_key = (
            tree.key_for(category.parent_id).to_wire()
            if category.parent_id and category.parent_id in tree.nodes
            else None
        )
        return {
            "_id": category.id,
            "name": category.name,
            "description": category.description,
            "color": category.color,
            "icon": category.icon,
            "type": category.type.value,
            "parentCategory": parent_key,
            "isActive": category.is_active,
            "order": category.order,
            "createdAt": record.created_at.isoformat(),
            "updatedAt": record.updated_at.isoformat(),
        }

    async def prepare(self, record: dict[str, Any], ctx: ImportContext) -> PreparedRecord:
        parent_id = await self._resolve_parent(record.get("parentCategory"))
        created_at = parse_timestamp(record.get("createdAt"))
        try:
            category = Category(
                name=record.get("name") or "",
                description=record.get("description"),
                color=record.get("color"),
                icon=record.get("icon"),
                type=record.get("type"),
                parent_id=parent_id,
                is_active=bool(record.get("isActive", True)),
                order=record.get("order") or 0,
                **({"created_at": created_at} if created_at else {}),
            )
        except ValueError as e:
            raise ValidationError(f"Invalid category {record.get('name')!r}: {e}") from e
        return PreparedRecord(
            fields={"category": category},
            created_at=created_at,
            label=category.name,
        )

    async def _resolve_parent(self, parent: Any) -> str | None:
        if parent is None or parent == "":
            return None
        if isinstance(parent, dict):
            try:
                key = CategoryKey.model_validate(parent)
            except ValueError as e:
                raise ValidationError(f"Invalid parent category key: {e}") from e
            found = await self.store.categories.find_by_key(key)
            if found is None:
                raise UnresolvedReferenceError("parentCategory", key.to_wire())
            return found.id
        if isinstance(parent, str):
            found = await self.store.categories.get(parent)
            if found is None:
                raise UnresolvedReferenceError("parentCategory", parent)
            return found.id
        raise ValidationError(f"Invalid parentCategory: {parent!r}")

    async def match_existing(self, prepared: PreparedRecord) -> str | None:
        category: Category = prepared.fields["category"]
        found = await self.store.categories.find_child(
            category.name, category.type, category.parent_id
        )
        return found.id if found else None

    async def create(self, prepared: PreparedRecord) -> str:
        created = await self.store.categories.create(prepared.fields["category"])
        return created.id

    async def update(self, existing_id: str, prepared: PreparedRecord) -> None:
        category: Category = prepared.fields["category"]
        current = await self.store.categories.get(existing_id)
        order = category.order or (current.order if current else 0)
        await self.store.categories.update_category(
            category.model_copy(update={"id": existing_id, "order": order})
        )


class NamedCategoryStrategy(EntityStrategy):
    """Flat group / forum categories, matched by name."""

    date_filtered = False
    active_only = True

    def __init__(
        self, store: Store, repository: DocumentRepository, kind: EntityKind
    ) -> None:
        super().__init__(store, repository)
        self.kind = kind

    async def selection_clauses(self, policy: SelectionPolicy) -> tuple[list[str], list[Any]]:
        return ["is_active = 1"], []

    async def snapshot_fields(
        self, record: StoredRecord, references: ReferenceResolver
    ) -> dict[str, Any]:
        return {"name": record.fields["name"], "isActive": bool(record.fields["is_active"])}

    async def prepare(self, record: dict[str, Any], ctx: ImportContext) -> PreparedRecord:
        name = require_text(record, "name", max_length=50)
        return PreparedRecord(
            fields={"name": name, "is_active": int(bool(record.get("isActive", True)))},
            document=content_fields(record, "name", "isActive"),
            created_at=parse_timestamp(record.get("createdAt")),
            label=name,
        )

    async def match_existing(self, prepared: PreparedRecord) -> str | None:
        return await self._match(["name = ?"], [prepared.fields["name"]])


class CompanyStrategy(EntityStrategy):
    """Companies, matched by name."""

    kind = EntityKind.COMPANIES
    depends_on = (EntityKind.USERS, EntityKind.CATEGORIES)
    author_column = "owner_id"
    category_filtered = True

    async def snapshot_fields(
        self, record: StoredRecord, references: ReferenceResolver
    ) -> dict[str, Any]:
        return {
            "name": record.fields["name"],
            "owner": await references.user_summary(record.fields["owner_id"]),
            "category": await references.category_summary(record.fields["category_id"]),
        }

    async def prepare(self, record: dict[str, Any], ctx: ImportContext) -> PreparedRecord:
        name = require_text(record, "name", max_length=200)
        refs = ctx.references
        return PreparedRecord(
            fields={
                "name": name,
                "owner_id": await refs.user_id(record.get("owner"))
                or refs.fallback_user_id,
                "category_id": await refs.category_id(
                    record.get("category"), CategoryType.COMPANY
                ),
            },
            document=content_fields(record, "name", "owner", "category"),
            created_at=parse_timestamp(record.get("createdAt")),
            label=name,
        )

    async def match_existing(self, prepared: PreparedRecord) -> str | None:
        return await self._match(["name = ?"], [prepared.fields["name"]])


class CommunityStrategy(EntityStrategy):
    """Groups and forums, matched by name.

    ``members`` (groups) or ``moderators`` (forums) are user lists.
    """

    author_column = "creator_id"

    def __init__(
        self,
        store: Store,
        repository: DocumentRepository,
        kind: EntityKind,
        category_repository: DocumentRepository,
        user_list_field: str,
        category_kind: EntityKind,
    ) -> None:
        super().__init__(store, repository)
        self.kind = kind
        self.depends_on = (EntityKind.USERS, category_kind)
        self.category_repository = category_repository
        self.user_list_field = user_list_field

    async def snapshot_fields(
        self, record: StoredRecord, references: ReferenceResolver
    ) -> dict[str, Any]:
        return {
            "name": record.fields["name"],
            "creator": await references.user_summary(record.fields["creator_id"]),
            "category": await references.named_summary(
                self.category_repository, record.fields["category_id"]
            ),
            self.user_list_field: await references.user_summaries(
                record.document.get(self.user_list_field) or []
            ),
        }

    async def prepare(self, record: dict[str, Any], ctx: ImportContext) -> PreparedRecord:
        name = require_text(record, "name", max_length=200)
        refs = ctx.references
        document = content_fields(record, "name", "creator", "category")
        document[self.user_list_field] = await refs.user_ids(
            as_list(record.get(self.user_list_field), self.user_list_field)
        )
        return PreparedRecord(
            fields={
                "name": name,
                "creator_id": await refs.user_id(record.get("creator"))
                or refs.fallback_user_id,
                "category_id": await refs.named_id(
                    self.category_repository, record.get("category")
                ),
            },
            document=document,
            created_at=parse_timestamp(record.get("createdAt")),
            label=name,
        )

    async def match_existing(self, prepared: PreparedRecord) -> str | None:
        return await self._match(["name = ?"], [prepared.fields["name"]])


class PostStrategy(EntityStrategy):
    """Timeline posts, matched by author, content and creation time."""

    kind = EntityKind.POSTS
    depends_on = (EntityKind.USERS,)
    author_column = "author_id"

    async def snapshot_fields(
        self, record: StoredRecord, references: ReferenceResolver
    ) -> dict[str, Any]:
        comments = []
        for comment in record.document.get("comments") or []:
            comments.append(
                {**comment, "author": await references.user_summary(comment.get("author"))}
            )
        return {
            "content": record.fields["content"],
            "author": await references.user_summary(record.fields["author_id"]),
            "comments": comments,
            "likes": await references.user_summaries(record.document.get("likes") or []),
        }

    async def prepare(self, record: dict[str, Any], ctx: ImportContext) -> PreparedRecord:
        content = require_text(record, "content", max_length=10_000)
        refs = ctx.references

        comments: list[dict[str, Any]] = []
        for comment in as_list(record.get("comments"), "comments"):
            if not isinstance(comment, dict):
                raise ValidationError("comments must contain objects")
            created = parse_timestamp(comment.get("createdAt"))
            comments.append(
                {
                    "text": comment.get("text"),
                    "author": await refs.user_id(comment.get("author")),
                    "createdAt": created.isoformat() if created else None,
                }
            )

        document = content_fields(record, "content", "author", "comments", "likes")
        document["comments"] = comments
        document["likes"] = await refs.user_ids(as_list(record.get("likes"), "likes"))
        return PreparedRecord(
            fields={
                "content": content,
                "author_id": await refs.user_id(record.get("author")),
            },
            document=document,
            created_at=parse_timestamp(record.get("createdAt")),
            label=content[:40],
        )

    async def match_existing(self, prepared: PreparedRecord) -> str | None:
        clauses = ["content = ?", "author_id IS ?"]
        params: list[Any] = [prepared.fields["content"], prepared.fields["author_id"]]
        if prepared.created_at is not None:
            clauses.append("created_at = ?")
            params.append(to_storage_timestamp(prepared.created_at))
        return await self._match(clauses, params)


class ThreadPostStrategy(EntityStrategy):
    """Group and forum posts, matched by title, container and author."""

    author_column = "author_id"

    def __init__(
        self,
        store: Store,
        repository: DocumentRepository,
        kind: EntityKind,
        container_field: str,
        container_repository: DocumentRepository,
        container_kind: EntityKind,
    ) -> None:
        super().__init__(store, repository)
        self.kind = kind
        self.depends_on = (EntityKind.USERS, container_kind)
        self.container_field = container_field
        self.container_column = f"{container_field}_id"
        self.container_repository = container_repository

    async def snapshot_fields(
        self, record: StoredRecord, references: ReferenceResolver
    ) -> dict[str, Any]:
        return {
            "title": record.fields["title"],
            "author": await references.user_summary(record.fields["author_id"]),
            self.container_field: await references.named_summary(
                self.container_repository, record.fields[self.container_column]
            ),
        }

    async def prepare(self, record: dict[str, Any], ctx: ImportContext) -> PreparedRecord:
        title = require_text(record, "title", max_length=300)
        refs = ctx.references
        container = record.get(self.container_field)
        container_id = await refs.named_id(self.container_repository, container)
        if container_id is None:
            raise UnresolvedReferenceError(self.container_field, container)
        return PreparedRecord(
            fields={
                "title": title,
                self.container_column: container_id,
                "author_id": await refs.user_id(record.get("author")),
            },
            document=content_fields(record, "title", "author", self.container_field),
            created_at=parse_timestamp(record.get("createdAt")),
            label=title,
        )

    async def match_existing(self, prepared: PreparedRecord) -> str | None:
        return await self._match(
            ["title = ?", f"{self.container_column} = ?", "author_id IS ?"],
            [
                prepared.fields["title"],
                prepared.fields[self.container_column],
                prepared.fields["author_id"],
            ],
        )


class AuthoredContentStrategy(EntityStrategy):
    """Announcements and blogs, matched by title and author."""

    author_column = "author_id"
    category_filtered = True

    def __init__(
        self,
        store: Store,
        repository: DocumentRepository,
        kind: EntityKind,
        category_type: CategoryType,
    ) -> None:
        super().__init__(store, repository)
        self.kind = kind
        self.depends_on = (EntityKind.USERS, EntityKind.CATEGORIES)
        self.category_type = category_type

    async def snapshot_fields(
        self, record: StoredRecord, references: ReferenceResolver
    ) -> dict[str, Any]:
        return {
            "title": record.fields["title"],
            "author": await references.user_summary(record.fields["author_id"]),
            "category": await references.category_summary(record.fields["category_id"]),
        }

    async def prepare(self, record: dict[str, Any], ctx: ImportContext) -> PreparedRecord:
        title = require_text(record, "title", max_length=300)
        refs = ctx.references
        document = content_fields(record, "title", "author", "category")
        if "tags" in record:
            document["tags"] = [str(tag) for tag in as_list(record.get("tags"), "tags")]
        return PreparedRecord(
            fields={
                "title": title,
                "author_id": await refs.user_id(record.get("author")),
                "category_id": await refs.category_id(
                    record.get("category"), self.category_type
                ),
            },
            document=document,
            created_at=parse_timestamp(record.get("createdAt")),
            label=title,
        )

    async def match_existing(self, prepared: PreparedRecord) -> str | None:
        return await self._match(
            ["title = ?", "author_id IS ?"],
            [prepared.fields["title"], prepared.fields["author_id"]],
        )


class CompanyContentStrategy(EntityStrategy):
    """Job offers and advisories, matched by title and company.

    A company that cannot be found makes the record an error.
    """

    company_scoped = True
    category_filtered = True

    def __init__(
        self,
        store: Store,
        repository: DocumentRepository,
        kind: EntityKind,
        category_type: CategoryType,
    ) -> None:
        super().__init__(store, repository)
        self.kind = kind
        self.depends_on = (EntityKind.COMPANIES, EntityKind.CATEGORIES)
        self.category_type = category_type

    async def snapshot_fields(
        self, record: StoredRecord, references: ReferenceResolver
    ) -> dict[str, Any]:
        return {
            "title": record.fields["title"],
            "company": await references.named_summary(
                self.store.companies, record.fields["company_id"]
            ),
            "category": await references.category_summary(record.fields["category_id"]),
        }

    async def prepare(self, record: dict[str, Any], ctx: ImportContext) -> PreparedRecord:
        title = require_text(record, "title", max_length=200)
        refs = ctx.references
        company = record.get("company")
        company_id = await refs.named_id(self.store.companies, company)
        if company_id is None:
            raise UnresolvedReferenceError("company", company)
        return PreparedRecord(
            fields={
                "title": title,
                "company_id": company_id,
                "category_id": await refs.category_id(
                    record.get("category"), self.category_type
                ),
            },
            document=content_fields(record, "title", "company", "category"),
            created_at=parse_timestamp(record.get("createdAt")),
            label=title,
        )

    async def match_existing(self, prepared: PreparedRecord) -> str | None:
        return await self._match(
            ["title = ?", "company_id = ?"],
            [prepared.fields["title"], prepared.fields["company_id"]],
        )

"""Translation between stored identifiers and portable references."""

import logging
from collections.abc import Iterable
from typing import Any

from lapublica_backup.db.repositories import DocumentRepository, Store
from lapublica_backup.models.category import CategoryType

logger = logging.getLogger(__name__)


class ReferenceResolver:
    """Resolve references in both directions for one export or import.

    On export, stored IDs become summaries carrying natural keys
    (``{_id, email, ...}``, ``{_id, name}``). On import, such summaries
    (or raw IDs valid in the target store) become target IDs. Only
    successful lookups are cached, since later stages of an import
    create the records earlier misses were looking for.
    """

    def __init__(self, store: Store, fallback_user_id: str | None = None) -> None:
        """Initialize resolver.

        Args:
            store: Target store
            fallback_user_id: User standing in for unresolved authors
        """
        self.store = store
        self.fallback_user_id = fallback_user_id
        self._summaries: dict[tuple[str, str], dict[str, Any]] = {}
        self._ids: dict[tuple[str, str], str] = {}

    # Export direction

    async def user_summary(self, user_id: str | None) -> dict[str, Any] | str | None:
        """Portable form of a user reference; the raw ID if it dangles."""
        if not user_id:
            return None
        cache_key = ("users", user_id)
        if cache_key not in self._summaries:
            user = await self.store.users.find_by_id(user_id)
            if user is None:
                return user_id
            self._summaries[cache_key] = {
                "_id": user.id,
                "email": user.fields["email"],
                "username": user.fields["username"],
                "firstName": user.document.get("firstName"),
                "lastName": user.document.get("lastName"),
            }
        return self._summaries[cache_key]

    async def user_summaries(self, user_ids: Iterable[Any]) -> list[Any]:
        return [await self.user_summary(user_id) for user_id in user_ids if user_id]

    async def category_summary(self, category_id: str | None) -> dict[str, Any] | str | None:
        """Portable form of a content category reference."""
        if not category_id:
            return None
        cache_key = ("categories", category_id)
        if cache_key not in self._summaries:
            category = await self.store.categories.get(category_id)
            if category is None:
                return category_id
            self._summaries[cache_key] = {
                "_id": category.id,
                "name": category.name,
                "type": category.type.value,
                "color": category.color,
            }
        return self._summaries[cache_key]

    async def named_summary(
        self, repository: DocumentRepository, record_id: str | None
    ) -> dict[str, Any] | str | None:
        """Portable ``{_id, name}`` form for companies, groups, forums and their categories."""
        if not record_id:
            return None
        cache_key = (repository.table, record_id)
        if cache_key not in self._summaries:
            record = await repository.find_by_id(record_id)
            if record is None:
                return record_id
            self._summaries[cache_key] = {"_id": record.id, "name": record.fields["name"]}
        return self._summaries[cache_key]

    # Import direction

    async def user_id(self, reference: Any, use_fallback: bool = True) -> str | None:
        """Target ID for a user reference.

        Args:
            reference: ``{email, username}`` summary or raw user ID
            use_fallback: Fall back to the importing administrator

        Returns:
            User ID, or None when unresolved and no fallback applies
        """
        resolved: str | None = None
        if isinstance(reference, dict):
            email = reference.get("email")
            username = reference.get("username")
            lookup = email or username
            if lookup:
                cache_key = ("users", str(lookup).casefold())
                resolved = self._ids.get(cache_key)
                if resolved is None:
                    user = await self.store.users.find_by_email_or_username(email, username)
                    if user is not None:
                        resolved = self._ids[cache_key] = user.id
            if resolved is None and reference.get("_id"):
                resolved = await self._existing_id(self.store.users, str(reference["_id"]))
        elif isinstance(reference, str) and reference:
            resolved = await self._existing_id(self.store.users, reference)

        if resolved is None and use_fallback and reference:
            logger.debug("User reference %r unresolved, using fallback", reference)
            return self.fallback_user_id
        return resolved

    async def user_ids(self, references: Iterable[Any]) -> list[str]:
        """Target IDs for a list of user references, dropping unresolved ones."""
        resolved: list[str] = []
        for reference in references:
            user_id = await self.user_id(reference, use_fallback=False)
            if user_id and user_id not in resolved:
                resolved.append(user_id)
        return resolved

    async def named_id(self, repository: DocumentRepository, reference: Any) -> str | None:
        """Target ID for a reference matched by name.

        Args:
            repository: Repository of the referenced collection
            reference: ``{name}`` summary, bare name or raw ID

        Returns:
            Record ID or None when unresolved
        """
        if isinstance(reference, dict):
            name = reference.get("name")
            if isinstance(name, str) and name.strip():
                return await self._id_by_name(repository, name)
            if reference.get("_id"):
                return await self._existing_id(repository, str(reference["_id"]))
            return None
        if isinstance(reference, str) and reference.strip():
            return await self._existing_id(repository, reference) or await self._id_by_name(
                repository, reference
            )
        return None

    async def category_id(self, reference: Any, category_type: CategoryType) -> str | None:
        """Target ID for a content category reference of a given type.

        A category of the same name but another type is used when no
        category of the expected type exists.
        """
        name: str | None = None
        if isinstance(reference, dict):
            name = reference.get("name") if isinstance(reference.get("name"), str) else None
            if not name and reference.get("_id"):
                return await self._existing_id(self.store.categories, str(reference["_id"]))
        elif isinstance(reference, str) and reference.strip():
            existing = await self._existing_id(self.store.categories, reference)
            if existing:
                return existing
            name = reference

        if not name or not name.strip():
            return None

        cache_key = ("categories", f"{category_type.value}:{name.strip().casefold()}")
        if cache_key in self._ids:
            return self._ids[cache_key]
        category = await self.store.categories.find_by_name(name, category_type)
        if category is None:
            category = await self.store.categories.find_by_name(name)
        if category is None:
            return None
        self._ids[cache_key] = category.id
        return category.id

    async def _id_by_name(self, repository: DocumentRepository, name: str) -> str | None:
        cache_key = (repository.table, name.strip().casefold())
        if cache_key in self._ids:
            return self._ids[cache_key]
        record = await repository.find_one(["name = ?"], [name.strip()])
        if record is None:
            return None
        self._ids[cache_key] = record.id
        return record.id

    async def _existing_id(self, repository: DocumentRepository, record_id: str) -> str | None:
        cache_key = (repository.table, f"id:{record_id}")
        if cache_key in self._ids:
            return self._ids[cache_key]
        if await repository.count(["id = ?"], [record_id]) == 0:
            return None
        self._ids[cache_key] = record_id
        return record_id

"""Category repository and hierarchy index."""

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from lapublica_backup.db.database import Database
from lapublica_backup.db.repositories.document_repository import DocumentRepository
from lapublica_backup.models.category import Category, CategoryKey, CategoryType
from lapublica_backup.models.record import StoredRecord

CATEGORY_COLUMNS = ("name", "type", "parent_id", "is_active", "sort_order")

PATH_SEPARATOR = " > "


@dataclass
class CategoryTree:
    """Flat, id-indexed arena of categories with parent pointers.

    Hierarchy queries walk the index iteratively.
    """

    nodes: dict[str, Category] = field(default_factory=dict)
    children: dict[str | None, list[str]] = field(default_factory=dict)

    @classmethod
    def from_categories(cls, categories: Iterable[Category]) -> "CategoryTree":
        tree = cls()
        for category in categories:
            tree.nodes[category.id] = category
        for category in tree.nodes.values():
            parent_id = category.parent_id if category.parent_id in tree.nodes else None
            tree.children.setdefault(parent_id, []).append(category.id)
        for ids in tree.children.values():
            ids.sort(key=lambda cid: (tree.nodes[cid].order, tree.nodes[cid].name))
        return tree

    def ancestors(self, category_id: str) -> list[Category]:
        """Categories from the root down to ``category_id``, inclusive.

        Raises:
            KeyError: If the category is not in the index
        """
        chain: list[Category] = []
        seen: set[str] = set()
        current: str | None = category_id
        while current is not None and current in self.nodes and current not in seen:
            seen.add(current)
            node = self.nodes[current]
            chain.append(node)
            current = node.parent_id
        if not chain:
            raise KeyError(category_id)
        chain.reverse()
        return chain

    def full_path(self, category_id: str) -> str:
        """Names from the root down, e.g. ``Tecnologia > Software``."""
        return PATH_SEPARATOR.join(node.name for node in self.ancestors(category_id))

    def key_for(self, category_id: str) -> CategoryKey:
        """Natural key of a category, parent chain included."""
        root, *rest = self.ancestors(category_id)
        key = CategoryKey(name=root.name, type=root.type)
        for node in rest:
            key = CategoryKey(name=node.name, type=node.type, parent=key)
        return key

    def depth(self, category_id: str) -> int:
        return len(self.ancestors(category_id)) - 1

    def descendants(self, category_id: str, active_only: bool = True) -> list[Category]:
        """All categories below ``category_id``, breadth first."""
        queue: deque[str] = deque(self.children.get(category_id, []))
        visited: set[str] = {category_id}
        results: list[Category] = []
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            node = self.nodes[current]
            if active_only and not node.is_active:
                continue
            results.append(node)
            queue.extend(self.children.get(current, []))
        return results


class CategoryRepository(DocumentRepository):
    """Repository for content categories."""

    def __init__(self, db: Database) -> None:
        """Initialize repository.

        Args:
            db: Database instance
        """
        super().__init__(db, "categories", CATEGORY_COLUMNS)

    async def create(self, category: Category) -> Category:
        """Create a category, assigning the next sibling order when unset.

        Args:
            category: Category to create

        Returns:
            Created category with its stored ID and order
        """
        if category.order == 0:
            category = category.model_copy(
                update={"order": await self._next_order(category.type, category.parent_id)}
            )
        record_id = await self.insert(
            self._fields(category), self._document(category), created_at=category.created_at
        )
        return category.model_copy(update={"id": record_id})

    async def update_category(self, category: Category) -> None:
        """Persist every field of an existing category."""
        await self.update(category.id, self._fields(category), self._document(category))

    async def get(self, category_id: str) -> Category | None:
        record = await self.find_by_id(category_id)
        return self._record_to_category(record) if record else None

    async def find_child(
        self, name: str, category_type: CategoryType, parent_id: str | None
    ) -> Category | None:
        """Find a category by name (case-insensitive), type and parent."""
        record = await self.find_one(
            ["name = ?", "type = ?", "parent_id IS ?"],
            [name.strip(), category_type.value, parent_id],
        )
        return self._record_to_category(record) if record else None

    async def find_by_key(self, key: CategoryKey) -> Category | None:
        """Resolve a natural key by walking it from the root.

        Args:
            key: Category natural key

        Returns:
            Matching category or None if any link of the chain is missing
        """
        parent_id: str | None = None
        found: Category | None = None
        for link in key.chain():
            found = await self.find_child(link.name, link.type, parent_id)
            if found is None:
                return None
            parent_id = found.id
        return found

    async def find_by_name(
        self, name: str, category_type: CategoryType | None = None
    ) -> Category | None:
        """Find a category by name, roots first, optionally of one type."""
        clauses = ["name = ?"]
        params: list[Any] = [name.strip()]
        if category_type is not None:
            clauses.append("type = ?")
            params.append(category_type.value)
        cursor = await self.db.execute(
            f"SELECT * FROM categories WHERE {' AND '.join(clauses)} "
            "ORDER BY parent_id IS NOT NULL, created_at LIMIT 1",
            tuple(params),
        )
        row = await cursor.fetchone()
        return self._record_to_category(self._row_to_record(row)) if row else None

    async def load_tree(self) -> CategoryTree:
        """Load every category into a hierarchy index."""
        records = await self.find()
        return CategoryTree.from_categories(self._record_to_category(r) for r in records)

    async def get_full_path(self, category_id: str) -> str:
        """Full path of a category, e.g. ``Tecnologia > Software``."""
        tree = await self.load_tree()
        return tree.full_path(category_id)

    async def get_all_subcategories(self, category_id: str) -> list[Category]:
        """All active descendants of a category."""
        tree = await self.load_tree()
        return tree.descendants(category_id, active_only=True)

    async def _next_order(self, category_type: CategoryType, parent_id: str | None) -> int:
        cursor = await self.db.execute(
            "SELECT MAX(sort_order) FROM categories WHERE type = ? AND parent_id IS ?",
            (category_type.value, parent_id),
        )
        row = await cursor.fetchone()
        last = row[0] if row else None
        return (last or 0) + 1

    @staticmethod
    def _fields(category: Category) -> dict[str, Any]:
        return {
            "name": category.name,
            "type": category.type.value,
            "parent_id": category.parent_id,
            "is_active": int(category.is_active),
            "sort_order": category.order,
        }

    @staticmethod
    def _document(category: Category) -> dict[str, Any]:
        return {
            "description": category.description,
            "color": category.color,
            "icon": category.icon,
        }

    @staticmethod
    def _record_to_category(record: StoredRecord) -> Category:
        """Convert StoredRecord to Category."""
        return Category(
            id=record.id,
            name=record.fields["name"],
            type=CategoryType(record.fields["type"]),
            parent_id=record.fields["parent_id"],
            is_active=bool(record.fields["is_active"]),
            order=record.fields["sort_order"],
            description=record.document.get("description"),
            color=record.document.get("color") or "#3B82F6",
            icon=record.document.get("icon") or "Tag",
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


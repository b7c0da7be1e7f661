"""Ordering of hierarchical category records within one backup document."""

import logging
from collections import defaultdict
from collections.abc import Hashable
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from lapublica_backup.models.category import CategoryKey, CategoryType

logger = logging.getLogger(__name__)


@dataclass
class TierItem:
    """One category record scheduled for reconciliation.

    ``lock_key`` is shared by records with the same natural key, which the
    orchestrator reconciles one at a time.
    """

    record: Any
    lock_key: Hashable


@dataclass
class ResolvedBatch:
    """Category records split into depth tiers plus the unresolvable ones."""

    tiers: list[list[TierItem]] = field(default_factory=list)
    unresolved: list[tuple[Any, str]] = field(default_factory=list)

    @property
    def size(self) -> int:
        return sum(len(tier) for tier in self.tiers) + len(self.unresolved)


@dataclass(eq=False)
class _Node:
    index: int
    record: Any
    source_id: str | None = None
    name: str | None = None
    type: CategoryType | None = None
    parent_ref: Any = None
    parent_key: CategoryKey | None = None
    parent_node: "_Node | None" = None
    key: CategoryKey | None = None
    depth: int | None = None
    settled: bool = False
    cyclic: bool = False


class DependencyResolver:
    """Sort category snapshots so parents are reconciled before children.

    Parents may be referenced either by ``CategoryKey`` or by the
    document-local ``_id`` of another record in the same batch. Local ids
    are rewritten into keys, since they mean nothing to the target store.
    A raw id that names no record in the batch is left untouched for a
    store lookup. Records caught in a parent cycle, and their descendants,
    are reported as unresolved.
    """

    def resolve(self, records: list[Any]) -> ResolvedBatch:
        """Split records into tiers of non-decreasing depth.

        Args:
            records: Category snapshots as found in the document

        Returns:
            Tiers in processing order and the unresolved records
        """
        nodes = [self._node(index, record) for index, record in enumerate(records)]

        by_source: dict[str, _Node] = {}
        for node in nodes:
            if node.source_id and node.source_id not in by_source:
                by_source[node.source_id] = node
        for node in nodes:
            if isinstance(node.parent_ref, str) and node.parent_ref:
                node.parent_node = by_source.get(node.parent_ref)

        for node in nodes:
            self._settle(node)

        by_identity: dict[tuple[tuple[str, str], ...], _Node] = {}
        for node in nodes:
            if node.key is not None and not node.cyclic:
                by_identity.setdefault(node.key.identity(), node)

        batch = ResolvedBatch()
        tiers: dict[int, list[TierItem]] = defaultdict(list)
        for node in nodes:
            if node.cyclic:
                logger.warning(
                    "Category %r has a circular parent chain", node.name or node.source_id
                )
                batch.unresolved.append((node.record, "circular parent chain"))
                continue
            depth = self._depth(node, by_identity)
            tiers[depth].append(
                TierItem(record=self._rewrite(node), lock_key=self._lock_key(node))
            )

        batch.tiers = [tiers[depth] for depth in sorted(tiers)]
        return batch

    @staticmethod
    def _lock_key(node: _Node) -> Hashable:
        if node.key is not None:
            return node.key.identity()
        if node.name is not None and node.type is not None:
            # Parent given as a store id
            return (node.name.casefold(), node.type.value, str(node.parent_ref))
        return ("#", node.index)

    @staticmethod
    def _node(index: int, record: Any) -> _Node:
        node = _Node(index=index, record=record)
        if not isinstance(record, dict):
            return node

        source_id = record.get("_id") or record.get("id")
        node.source_id = str(source_id) if source_id else None
        name = record.get("name")
        node.name = name.strip() if isinstance(name, str) and name.strip() else None
        try:
            node.type = CategoryType(record.get("type"))
        except ValueError:
            node.type = None

        node.parent_ref = record.get("parentCategory")
        if isinstance(node.parent_ref, dict):
            try:
                node.parent_key = CategoryKey.model_validate(node.parent_ref)
            except PydanticValidationError:
                node.parent_key = None
        return node

    def _settle(self, node: _Node) -> None:
        """Compute the key of ``node`` and of its in-batch ancestors."""
        path: list[_Node] = []
        current = node
        while current is not None and not current.settled:
            if any(seen is current for seen in path):
                start = next(i for i, seen in enumerate(path) if seen is current)
                for member in path[start:]:
                    member.cyclic = True
                    member.settled = True
                path = path[:start]
                break
            path.append(current)
            current = current.parent_node

        for member in reversed(path):
            parent = member.parent_node
            if parent is not None and parent.cyclic:
                member.cyclic = True
            else:
                member.key = self._own_key(member)
            member.settled = True

    @staticmethod
    def _own_key(node: _Node) -> CategoryKey | None:
        if node.name is None or node.type is None:
            return None
        if node.parent_node is not None:
            if node.parent_node.key is None:
                return None
            parent = node.parent_node.key
        elif node.parent_key is not None:
            parent = node.parent_key
        elif node.parent_ref:
            # Raw id outside the batch: only the store can tell its key
            return None
        else:
            parent = None
        return CategoryKey(name=node.name, type=node.type, parent=parent)

    @staticmethod
    def _depth(node: _Node, by_identity: dict[tuple[tuple[str, str], ...], _Node]) -> int:
        path: list[_Node] = []
        current: _Node | None = node
        base = 0
        while current is not None:
            if current.depth is not None:
                base = current.depth + 1
                break
            if any(seen is current for seen in path):
                break
            path.append(current)

            link = current.parent_node
            if link is None and current.parent_key is not None:
                link = by_identity.get(current.parent_key.identity())
            if link is None:
                if current.parent_key is not None:
                    base = current.parent_key.depth + 1
                elif current.parent_ref:
                    base = 1
                else:
                    base = 0
                current.depth = base
                path.pop()
                base += 1
                break
            current = link

        for member in reversed(path):
            member.depth = base
            base += 1
        return node.depth if node.depth is not None else 0

    @staticmethod
    def _rewrite(node: _Node) -> Any:
        parent = node.parent_node
        if parent is None or parent.key is None:
            return node.record
        return {**node.record, "parentCategory": parent.key.to_wire()}

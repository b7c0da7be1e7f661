"""Per-kind export queries driven by a selection policy."""

import asyncio
import logging
from typing import Any

from lapublica_backup.db.repositories import Store
from lapublica_backup.models.backup import EntityKind, SelectionPolicy
from lapublica_backup.services.reference_resolver import ReferenceResolver
from lapublica_backup.services.registry import EntityRegistry

logger = logging.getLogger(__name__)


class Collector:
    """Run one filtered, capped query per selected entity kind.

    Kinds are queried concurrently. A failing kind yields an empty result
    and a warning; it never aborts the other kinds.
    """

    def __init__(self, store: Store, registry: EntityRegistry) -> None:
        """Initialize collector.

        Args:
            store: Source store
            registry: Strategy registry
        """
        self.store = store
        self.registry = registry

    async def collect(self, policy: SelectionPolicy) -> dict[EntityKind, list[dict[str, Any]]]:
        """Materialize snapshots for every selected kind.

        Args:
            policy: Selection policy

        Returns:
            Snapshots per selected kind, in EntityKind order
        """
        references = ReferenceResolver(self.store)
        kinds = [kind for kind in EntityKind if policy.includes(kind)]
        snapshots = await asyncio.gather(
            *(self._collect_kind(kind, policy, references) for kind in kinds)
        )
        return dict(zip(kinds, snapshots, strict=True))

    async def count(self, policy: SelectionPolicy) -> dict[EntityKind, int]:
        """Count what ``collect`` would return for every selected kind."""
        kinds = [kind for kind in EntityKind if policy.includes(kind)]
        counts = await asyncio.gather(*(self._count_kind(kind, policy) for kind in kinds))
        return dict(zip(kinds, counts, strict=True))

    async def _collect_kind(
        self, kind: EntityKind, policy: SelectionPolicy, references: ReferenceResolver
    ) -> list[dict[str, Any]]:
        try:
            snapshots = await self.registry[kind].collect(policy, references)
        except Exception as e:
            logger.warning("Error exporting %s: %s", kind.value, e, exc_info=True)
            return []
        logger.info("Exported %d %s", len(snapshots), kind.value)
        return snapshots

    async def _count_kind(self, kind: EntityKind, policy: SelectionPolicy) -> int:
        try:
            return await self.registry[kind].count(policy)
        except Exception as e:
            logger.warning("Error counting %s: %s", kind.value, e)
            return 0

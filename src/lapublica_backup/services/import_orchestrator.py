"""Dependency-ordered, per-record import of a backup document."""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Hashable, Mapping
from typing import Any

from lapublica_backup.db.repositories import Store
from lapublica_backup.models.backup import EntityKind, ImportOptions, ImportResult, KindCounters
from lapublica_backup.services.dependency_resolver import DependencyResolver, TierItem
from lapublica_backup.services.reconcilers import EntityStrategy, ImportContext, Outcome
from lapublica_backup.services.reference_resolver import ReferenceResolver
from lapublica_backup.services.registry import EntityRegistry, dependency_stages
from lapublica_backup.services.validation import validate_backup_payload

logger = logging.getLogger(__name__)


def _describe(record: Any) -> str:
    if isinstance(record, dict):
        for name in ("email", "name", "title", "_id"):
            if record.get(name):
                return str(record[name])
    return repr(record)[:60]


class ImportOrchestrator:
    """Reconcile every selected kind of a backup document into the store.

    Kinds run in dependency stages; kinds inside a stage are independent
    and run concurrently. Each record is committed on its own, so a failing
    record only bumps its kind's ``errors`` counter.
    """

    def __init__(self, store: Store, registry: EntityRegistry, concurrency: int = 8) -> None:
        """Initialize orchestrator.

        Args:
            store: Target store
            registry: Strategy registry
            concurrency: Upper bound on categories reconciled at once
        """
        self.store = store
        self.registry = registry
        self.concurrency = concurrency
        self.dependency_resolver = DependencyResolver()

    async def run(
        self,
        payload: Any,
        options: ImportOptions,
        fallback_user_id: str | None = None,
    ) -> ImportResult:
        """Import a backup document.

        Args:
            payload: Backup document as received
            options: Kinds to import and the replace policy
            fallback_user_id: User standing in for unresolved required authors

        Returns:
            Per-kind counters for every selected kind present in the document

        Raises:
            InvalidBackupError: If the document is structurally invalid
        """
        data = validate_backup_payload(payload)
        ctx = ImportContext(
            references=ReferenceResolver(self.store, fallback_user_id),
            replace_existing=options.replace_existing,
        )

        kinds = [kind for kind in EntityKind if kind in options.kinds and kind.value in data]
        result = ImportResult(results={kind: KindCounters() for kind in kinds})

        for stage in dependency_stages(kinds, self.registry):
            await asyncio.gather(
                *(self._import_kind(kind, data, ctx, result.results[kind]) for kind in stage)
            )

        for kind, counters in result.results.items():
            logger.info(
                "Imported %s: %d created, %d updated, %d skipped, %d errors",
                kind.value,
                counters.created,
                counters.updated,
                counters.skipped,
                counters.errors,
            )
        return result

    async def _import_kind(
        self,
        kind: EntityKind,
        data: Mapping[str, Any],
        ctx: ImportContext,
        counters: KindCounters,
    ) -> None:
        records = data.get(kind.value) or []
        strategy = self.registry[kind]
        if kind is EntityKind.CATEGORIES:
            await self._import_categories(strategy, records, ctx, counters)
            return
        for record in records:
            await self._reconcile_one(strategy, record, ctx, counters)

    async def _import_categories(
        self,
        strategy: EntityStrategy,
        records: list[Any],
        ctx: ImportContext,
        counters: KindCounters,
    ) -> None:
        batch = self.dependency_resolver.resolve(records)
        for record, reason in batch.unresolved:
            logger.warning("Skipping category %s: %s", _describe(record), reason)
            counters.errors += 1

        semaphore = asyncio.Semaphore(self.concurrency)
        locks: dict[Hashable, asyncio.Lock] = defaultdict(asyncio.Lock)

        async def reconcile(item: TierItem) -> None:
            async with semaphore, locks[item.lock_key]:
                await self._reconcile_one(strategy, item.record, ctx, counters)

        for tier in batch.tiers:
            await asyncio.gather(*(reconcile(item) for item in tier))

    async def _reconcile_one(
        self,
        strategy: EntityStrategy,
        record: Any,
        ctx: ImportContext,
        counters: KindCounters,
    ) -> None:
        try:
            outcome = await strategy.reconcile(record, ctx)
        except Exception as e:
            logger.warning(
                "Error importing %s %s: %s", strategy.kind.value, _describe(record), e
            )
            outcome = Outcome.ERRORS
        setattr(counters, outcome.value, getattr(counters, outcome.value) + 1)

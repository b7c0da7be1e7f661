"""Backup service facade used by the HTTP layer."""

import logging
from typing import Any

from lapublica_backup.config import Settings
from lapublica_backup.db.repositories import Store
from lapublica_backup.models.backup import (
    BackupDocument,
    ImportOptions,
    ImportResult,
    PreviewResult,
    SelectionPolicy,
)
from lapublica_backup.services.collector import Collector
from lapublica_backup.services.import_orchestrator import ImportOrchestrator
from lapublica_backup.services.preview_service import PreviewService
from lapublica_backup.services.registry import build_registry
from lapublica_backup.services.snapshot_builder import SnapshotBuilder
from lapublica_backup.services.validation import validate_backup_payload

logger = logging.getLogger(__name__)


class BackupService:
    """Preview, export and import of granular platform backups."""

    def __init__(self, store: Store, settings: Settings) -> None:
        """Initialize service.

        Args:
            store: Platform store
            settings: Application settings
        """
        self.store = store
        self.settings = settings
        self.registry = build_registry(store)
        self.collector = Collector(store, self.registry)
        self.previewer = PreviewService(self.collector)
        self.builder = SnapshotBuilder(settings.backup_version, settings.platform_label)
        self.orchestrator = ImportOrchestrator(
            store, self.registry, concurrency=settings.import_concurrency
        )

    async def preview(self, policy: SelectionPolicy) -> PreviewResult:
        """Count what an export with ``policy`` would contain."""
        return await self.previewer.preview(policy)

    async def export(self, policy: SelectionPolicy) -> BackupDocument:
        """Export the selected collections.

        Args:
            policy: Selection policy

        Returns:
            Backup document
        """
        logger.info(
            "Exporting %s", ", ".join(sorted(kind.value for kind in policy.kinds)) or "nothing"
        )
        data = await self.collector.collect(policy)
        document = self.builder.build(data, policy)
        logger.info("Export finished with %d records", sum(document.statistics.values()))
        return document

    async def import_backup(
        self,
        payload: Any,
        options: ImportOptions,
        caller_email: str | None = None,
    ) -> ImportResult:
        """Import a backup document.

        Args:
            payload: Backup document as received
            options: Kinds to import and the replace policy
            caller_email: Email of the requesting administrator, whose account
                stands in for unresolved required authors

        Returns:
            Per-kind counters

        Raises:
            InvalidBackupError: If the document is structurally invalid
        """
        validate_backup_payload(payload)
        fallback_user_id = await self._fallback_user_id(caller_email)
        return await self.orchestrator.run(payload, options, fallback_user_id)

    async def _fallback_user_id(self, caller_email: str | None) -> str | None:
        if caller_email:
            user = await self.store.users.find_by_email(caller_email)
            if user:
                return user.id
        admin = await self.store.users.find_one(["role = ?"], ["admin"])
        return admin.id if admin else None

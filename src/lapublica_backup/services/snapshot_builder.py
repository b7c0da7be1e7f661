"""Assembly of collected snapshots into a backup document."""

from collections.abc import Mapping
from typing import Any

from lapublica_backup.models.backup import BackupDocument, EntityKind, SelectionPolicy


class SnapshotBuilder:
    """Stamp collector output with version, date and platform."""

    def __init__(self, version: str, platform: str) -> None:
        self.version = version
        self.platform = platform

    def build(
        self,
        data: Mapping[EntityKind, list[dict[str, Any]]],
        policy: SelectionPolicy,
    ) -> BackupDocument:
        """Build the document; statistics always follow from ``data``.

        Args:
            data: Snapshots per selected kind
            policy: Selection that produced ``data``

        Returns:
            Backup document
        """
        return BackupDocument.assemble(
            data,
            version=self.version,
            platform=self.platform,
            options=policy.to_wire(),
        )

"""Count-only export preview."""

from lapublica_backup.models.backup import EntityKind, PreviewResult, SelectionPolicy
from lapublica_backup.services.collector import Collector

# Policy fields echoed back as the preview's filters
_FILTER_FIELDS = ("dateFrom", "dateTo", "authorId", "categoryFilter", "maxRecords")


class PreviewService:
    """Answer "how much would be exported" without materializing records."""

    def __init__(self, collector: Collector) -> None:
        self.collector = collector

    async def preview(self, policy: SelectionPolicy) -> PreviewResult:
        """Count the records an export with this policy would contain.

        A policy selecting no kind counts every kind.

        Args:
            policy: Selection policy

        Returns:
            Per-kind counts, their total and the filters applied
        """
        if not policy.kinds:
            policy = policy.with_kinds(EntityKind)

        counts = await self.collector.count(policy)
        statistics = {kind.value: count for kind, count in counts.items()}
        wire = policy.to_wire()
        return PreviewResult(
            statistics=statistics,
            total_records=sum(statistics.values()),
            filters={name: wire[name] for name in _FILTER_FIELDS},
        )

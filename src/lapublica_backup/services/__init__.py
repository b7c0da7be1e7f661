"""Service layer for export, preview and import."""

from lapublica_backup.services.backup_service import BackupService
from lapublica_backup.services.collector import Collector
from lapublica_backup.services.dependency_resolver import DependencyResolver
from lapublica_backup.services.import_orchestrator import ImportOrchestrator
from lapublica_backup.services.preview_service import PreviewService
from lapublica_backup.services.registry import build_registry, dependency_stages

__all__ = [
    "BackupService",
    "Collector",
    "DependencyResolver",
    "ImportOrchestrator",
    "PreviewService",
    "build_registry",
    "dependency_stages",
]

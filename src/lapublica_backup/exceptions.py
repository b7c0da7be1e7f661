"""Custom exceptions for the backup engine."""


class BackupError(Exception):
    """Base class for backup engine errors."""

    pass


class InvalidBackupError(BackupError):
    """Raised when an inbound backup document is structurally invalid."""

    pass


class ValidationError(BackupError):
    """Raised when a record fails field validation."""

    pass


class UnresolvedReferenceError(BackupError):
    """Raised when a record references something missing from the store."""

    def __init__(self, kind: str, reference: object) -> None:
        self.kind = kind
        self.reference = reference
        super().__init__(f"Unresolved {kind} reference: {reference!r}")


class ConflictError(BackupError):
    """Raised when a write collides with an existing record."""

    pass

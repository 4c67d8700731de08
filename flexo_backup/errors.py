"""Error taxonomy for backup operations."""

from enum import Enum


class BackupErrorKind(str, Enum):
    """Distinct failure kinds callers must handle separately."""
    NOT_FOUND = "not_found"
    CORRUPT_BACKUP = "corrupt_backup"
    UNSUPPORTED_FORMAT = "unsupported_format"
    UNSUPPORTED_VERSION = "unsupported_version"
    SAFETY_BACKUP_FAILED = "safety_backup_failed"
    STORE_IO_ERROR = "store_io_error"
    VALIDATION_ERROR = "validation_error"
    EMPTY_SNAPSHOT = "empty_snapshot"


# Error hierarchy
class BackupError(Exception):
    """Base exception for backup operations."""
    kind: BackupErrorKind = BackupErrorKind.STORE_IO_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BackupNotFoundError(BackupError):
    """Unknown backup id."""
    kind = BackupErrorKind.NOT_FOUND

    def __init__(self, backup_id: str):
        super().__init__(f"Backup not found: {backup_id}")
        self.backup_id = backup_id


class CorruptBackupError(BackupError):
    """Checksum mismatch or unreadable artifact."""
    kind = BackupErrorKind.CORRUPT_BACKUP


class UnsupportedFormatError(BackupError):
    """Export/import container outside the supported set."""
    kind = BackupErrorKind.UNSUPPORTED_FORMAT


class UnsupportedVersionError(BackupError):
    """Artifact written with an unknown format version."""
    kind = BackupErrorKind.UNSUPPORTED_VERSION

    def __init__(self, version):
        super().__init__(f"Unsupported backup format version: {version!r}")
        self.version = version


class SafetyBackupFailedError(BackupError):
    """Pre-restore safety snapshot could not be captured."""
    kind = BackupErrorKind.SAFETY_BACKUP_FAILED


class StoreIOError(BackupError):
    """Underlying persistence failure."""
    kind = BackupErrorKind.STORE_IO_ERROR


class BackupValidationError(BackupError):
    """Malformed request."""
    kind = BackupErrorKind.VALIDATION_ERROR


class EmptySnapshotError(BackupError):
    """Caller required a non-empty snapshot but the live table had no matching rows."""
    kind = BackupErrorKind.EMPTY_SNAPSHOT

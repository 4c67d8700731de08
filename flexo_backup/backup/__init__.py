"""Backup and restore of machine programs."""

from .manager import BackupManager
from .models import (
    BackupMetadata,
    BackupRequest,
    BackupResult,
    BackupSource,
    BackupStats,
    MachineProgramFilter,
    MachineProgramRecord,
    RestoreResult,
    VerificationReport,
)
from .scheduler import DailyBackupScheduler

__all__ = [
    "BackupManager",
    "BackupMetadata",
    "BackupRequest",
    "BackupResult",
    "BackupSource",
    "BackupStats",
    "DailyBackupScheduler",
    "MachineProgramFilter",
    "MachineProgramRecord",
    "RestoreResult",
    "VerificationReport",
]

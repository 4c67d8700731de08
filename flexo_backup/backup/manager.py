"""Backup and restore orchestration for the machine-program table."""

from datetime import datetime
from typing import List, Optional

from .._storage.factory import StorageFactory
from .._utils import logger
from ..base import BaseBackupStore, BaseMachineProgramTable
from ..config import BackupConfig
from .codec import BackupCodec
from .models import (
    BackupMetadata,
    BackupRequest,
    BackupResult,
    BackupStats,
    MachineProgramRecord,
    RestoreResult,
    VerificationReport,
)
from .reports import ReportDataAdapter
from .restore import RestoreEngine
from .snapshot import SnapshotBuilder
from .transfer import BackupTransferCodec, ExportedFile
from .verifier import IntegrityVerifier


class BackupManager:
    """Single entry point used by the REST API and the daily scheduler."""

    def __init__(
        self,
        store: BaseBackupStore,
        table: BaseMachineProgramTable,
        codec: Optional[BackupCodec] = None,
        max_import_bytes: int = 50 * 1024 * 1024,
    ):
        """Initialize backup manager.

        Args:
            store: Durable store for artifacts and their metadata index
            table: Live machine-program table to snapshot and restore
            codec: Artifact codec, defaults to the current format version
            max_import_bytes: Upper bound on imported file size
        """
        self.store = store
        self.table = table
        self.codec = codec or BackupCodec()
        self.snapshots = SnapshotBuilder(store, table, self.codec)
        self.verifier = IntegrityVerifier(store, self.codec)
        self.restorer = RestoreEngine(store, table, self.codec, self.verifier, self.snapshots)
        self.transfer = BackupTransferCodec(store, self.codec, max_import_bytes=max_import_bytes)
        self.reports = ReportDataAdapter(store, self.codec, self.verifier)

    @classmethod
    def from_config(cls, config: BackupConfig) -> "BackupManager":
        store = StorageFactory.create_backup_store(config.store)
        table = StorageFactory.create_machine_table(config.table)
        logger.info(f"Backup manager using {config.store.backend} store and {config.table.backend} table")
        return cls(store, table, max_import_bytes=config.max_import_bytes)

    async def create_backup(self, request: Optional[BackupRequest] = None) -> BackupResult:
        return await self.snapshots.create_backup(request or BackupRequest())

    async def create_daily_backup(self, now: Optional[datetime] = None) -> BackupResult:
        return await self.snapshots.create_daily_backup(now=now)

    async def list_backups(self, verify: bool = True) -> List[BackupMetadata]:
        """List all backups, newest first.

        With ``verify`` each entry is re-checked and ``is_valid`` filled in;
        a corrupt artifact shows up as invalid instead of failing the list.
        """
        backups = await self.store.list_metadata()
        if not verify:
            return backups
        return [
            backup.model_copy(update={"is_valid": await self.verifier.verify(backup.backup_id)})
            for backup in backups
        ]

    async def get_backup(self, backup_id: str) -> BackupMetadata:
        metadata = await self.store.read_metadata(backup_id)
        return metadata.model_copy(update={"is_valid": await self.verifier.verify(backup_id)})

    async def verify_backup(self, backup_id: str) -> VerificationReport:
        return await self.verifier.check(backup_id)

    async def restore_backup(self, backup_id: str, create_safety_backup_first: bool = True) -> RestoreResult:
        return await self.restorer.restore(backup_id, create_safety_backup_first=create_safety_backup_first)

    async def delete_backup(self, backup_id: str) -> bool:
        """Delete backup.

        Returns:
            True if deleted, False if not found
        """
        return await self.store.delete(backup_id)

    async def export_backup(self, backup_id: str, format: str = "zip") -> ExportedFile:
        return await self.transfer.export(backup_id, format)

    async def import_backup(self, data: bytes, filename: Optional[str] = None) -> BackupResult:
        return await self.transfer.import_backup(data, filename)

    async def get_data_for_reports(self, backup_id: str) -> List[MachineProgramRecord]:
        return await self.reports.get_data_for_reports(backup_id)

    async def get_stats(self, backup_id: str) -> BackupStats:
        return await self.reports.get_stats(backup_id)

    async def close(self) -> None:
        await self.table.close()
        await self.store.close()

"""Capture live machine-program rows into stored backup artifacts."""

from datetime import datetime
from typing import Optional

from .._utils import logger, utc_now
from ..base import BaseBackupStore, BaseMachineProgramTable
from ..errors import BackupError, BackupValidationError, EmptySnapshotError, StoreIOError
from .codec import BackupCodec, summarize
from .models import BackupMetadata, BackupRequest, BackupResult, BackupSource
from .utils import generate_backup_id

DAILY_DESCRIPTION_PREFIX = "Daily backup - "


def daily_description(day: datetime) -> str:
    return f"{DAILY_DESCRIPTION_PREFIX}{day:%Y-%m-%d}"


class SnapshotBuilder:
    """Read the live table, encode the rows and store the artifact."""

    def __init__(self, store: BaseBackupStore, table: BaseMachineProgramTable, codec: BackupCodec):
        self.store = store
        self.table = table
        self.codec = codec

    async def capture(
        self,
        request: BackupRequest,
        source: BackupSource = BackupSource.MANUAL,
        now: Optional[datetime] = None,
    ) -> BackupMetadata:
        """Create and persist one snapshot.

        Args:
            request: What to capture and how to describe it
            source: Origin recorded in the metadata
            now: Capture time, defaults to the current UTC time

        Returns:
            Metadata of the stored artifact

        Raises:
            BackupValidationError: partial snapshot requested without a filter
            EmptySnapshotError: no rows matched and the request requires some
            StoreIOError: the live table or the store failed
        """
        if not request.include_all_machines and (request.filter is None or request.filter.is_empty()):
            raise BackupValidationError("A filter is required when includeAllMachines is false")

        now = now or utc_now()
        backup_id = generate_backup_id(now=now)

        records = await self.table.fetch(None if request.include_all_machines else request.filter)
        if not records and request.require_non_empty:
            raise EmptySnapshotError("No machine programs matched the snapshot request")

        encoded = self.codec.encode_payload(records)
        metadata = BackupMetadata(
            backup_id=backup_id,
            description=request.description or f"Manual backup - {now:%Y-%m-%d %H:%M}",
            created_at=now,
            backup_size_bytes=encoded.size_bytes,
            checksum=encoded.checksum,
            source=source,
            format_version=self.codec.format_version,
            **summarize(records),
        )

        await self.store.write(metadata, self.codec.dump(metadata, encoded))
        logger.info(
            f"Backup created: {backup_id} ({metadata.total_records} programs, "
            f"{metadata.machine_count} machines, source={source.value})"
        )
        return metadata

    async def create_backup(
        self,
        request: BackupRequest,
        source: BackupSource = BackupSource.MANUAL,
        now: Optional[datetime] = None,
    ) -> BackupResult:
        """Same as ``capture`` but reports failures in the result instead of raising."""
        try:
            metadata = await self.capture(request, source=source, now=now)
        except BackupError as e:
            logger.error(f"Backup failed ({e.kind.value}): {e.message}")
            return BackupResult(success=False, message=e.message, error=e.kind)
        except Exception as e:
            logger.exception("Unexpected error while creating backup")
            error = StoreIOError(f"Backup failed: {e}")
            return BackupResult(success=False, message=error.message, error=error.kind)

        return BackupResult(
            success=True,
            backup_id=metadata.backup_id,
            metadata=metadata,
            message=f"Backup created with {metadata.total_records} programs",
        )

    async def create_daily_backup(self, now: Optional[datetime] = None) -> BackupResult:
        now = now or utc_now()
        request = BackupRequest(description=daily_description(now), include_all_machines=True)
        return await self.create_backup(request, source=BackupSource.DAILY, now=now)

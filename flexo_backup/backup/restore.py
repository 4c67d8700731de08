"""Restore the live machine-program table from a stored artifact."""

import asyncio
from enum import Enum

from .._utils import logger, utc_now
from ..base import BaseBackupStore, BaseMachineProgramTable
from ..errors import (
    BackupError,
    BackupNotFoundError,
    CorruptBackupError,
    SafetyBackupFailedError,
    StoreIOError,
)
from .codec import BackupCodec
from .models import BackupRequest, BackupSource, RestoreResult
from .snapshot import SnapshotBuilder
from .verifier import IntegrityVerifier


class RestoreState(str, Enum):
    IDLE = "idle"
    VERIFYING = "verifying"
    RESTORING = "restoring"
    REJECTED = "rejected"


class RestoreEngine:
    """Serialized, verify-first replacement of the live table.

    Sequence per call: existence check, optional safety snapshot, integrity
    check, decode, then one transactional ``replace_all``. Nothing touches the
    live table before the replace, so a failure or cancellation at any earlier
    step leaves it unchanged.
    """

    def __init__(
        self,
        store: BaseBackupStore,
        table: BaseMachineProgramTable,
        codec: BackupCodec,
        verifier: IntegrityVerifier,
        snapshots: SnapshotBuilder,
    ):
        self.store = store
        self.table = table
        self.codec = codec
        self.verifier = verifier
        self.snapshots = snapshots
        self.state = RestoreState.IDLE
        self._lock = asyncio.Lock()

    async def restore(self, backup_id: str, create_safety_backup_first: bool = True) -> RestoreResult:
        """Restore ``backup_id`` into the live table.

        Failures are reported in the result; ``error`` carries the kind
        (not_found, safety_backup_failed, corrupt_backup, store_io_error).
        """
        async with self._lock:
            pre_restore_backup_id = None
            try:
                if not await self.store.exists(backup_id):
                    raise BackupNotFoundError(backup_id)

                if create_safety_backup_first:
                    pre_restore_backup_id = await self._safety_backup(backup_id)

                self.state = RestoreState.VERIFYING
                stored = await self.store.read(backup_id)
                report = self.verifier.check_stored(stored)
                if not report.is_valid:
                    self.state = RestoreState.REJECTED
                    raise CorruptBackupError(f"Backup {backup_id} failed verification: {report.reason}")

                # Decode the bytes that were just verified, never a second read.
                artifact = self.codec.decode(stored.data)

                self.state = RestoreState.RESTORING
                try:
                    restored = await self.table.replace_all(artifact.payload)
                except BackupError:
                    raise
                except Exception as e:
                    raise StoreIOError(f"Live table replace failed: {e}") from e

            except BackupError as e:
                logger.error(f"Restore of {backup_id} failed ({e.kind.value}): {e.message}")
                return RestoreResult(
                    success=False,
                    backup_id=backup_id,
                    message=e.message,
                    error=e.kind,
                    pre_restore_backup_id=pre_restore_backup_id,
                )
            finally:
                self.state = RestoreState.IDLE

        logger.info(f"Restore complete: {backup_id} ({restored} programs)")
        return RestoreResult(
            success=True,
            backup_id=backup_id,
            message=f"Restored {restored} programs from {backup_id}",
            restored_records=restored,
            pre_restore_backup_id=pre_restore_backup_id,
            restored_at=utc_now(),
        )

    async def _safety_backup(self, backup_id: str) -> str:
        request = BackupRequest(
            description=f"Safety backup before restoring {backup_id}",
            include_all_machines=True,
        )
        try:
            metadata = await self.snapshots.capture(request, source=BackupSource.SAFETY)
        except BackupError as e:
            raise SafetyBackupFailedError(f"Safety backup failed, restore aborted: {e.message}") from e
        except Exception as e:
            raise SafetyBackupFailedError(f"Safety backup failed, restore aborted: {e}") from e

        logger.info(f"Safety backup {metadata.backup_id} taken before restoring {backup_id}")
        return metadata.backup_id

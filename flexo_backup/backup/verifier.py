"""Integrity verification of stored artifacts."""

from ..base import BaseBackupStore, StoredArtifact
from ..errors import BackupError
from .._utils import logger
from .codec import BackupCodec, summarize
from .models import VerificationReport


class IntegrityVerifier:
    """Recompute and compare checksums without ever raising to the caller."""

    def __init__(self, store: BaseBackupStore, codec: BackupCodec):
        self.store = store
        self.codec = codec

    async def check(self, backup_id: str) -> VerificationReport:
        """Verify one artifact and say why it failed, if it did."""
        try:
            stored = await self.store.read(backup_id)
        except BackupError as e:
            return self._invalid(backup_id, e.message)
        except Exception as e:
            logger.exception(f"Unexpected error reading backup {backup_id}")
            return self._invalid(backup_id, f"Unexpected error: {e}")

        return self.check_stored(stored)

    def check_stored(self, stored: StoredArtifact) -> VerificationReport:
        """Verify artifact bytes already read from the store.

        Restore decodes the same ``stored.data`` it verified here.
        """
        backup_id = stored.metadata.backup_id
        try:
            document = self.codec.load_document(stored.data)

            computed = self.codec.payload_checksum(document)
            if computed != document["checksum"]:
                return self._invalid(backup_id, f"Payload checksum {computed} != embedded {document['checksum']}")
            if stored.metadata.checksum and computed != stored.metadata.checksum:
                return self._invalid(backup_id, f"Payload checksum {computed} != indexed {stored.metadata.checksum}")

            records = self.codec.decode_records(document)
            summary = summarize(records)
            if stored.metadata.total_records != summary["total_records"]:
                return self._invalid(
                    backup_id,
                    f"totalRecords {stored.metadata.total_records} != payload {summary['total_records']}",
                )
            if stored.metadata.machine_count != summary["machine_count"]:
                return self._invalid(
                    backup_id,
                    f"machineCount {stored.metadata.machine_count} != payload {summary['machine_count']}",
                )
        except BackupError as e:
            return self._invalid(backup_id, e.message)
        except Exception as e:
            logger.exception(f"Unexpected error verifying backup {backup_id}")
            return self._invalid(backup_id, f"Unexpected error: {e}")

        logger.debug(f"Backup {backup_id} verified")
        return VerificationReport(backup_id=backup_id, is_valid=True)

    async def verify(self, backup_id: str) -> bool:
        return (await self.check(backup_id)).is_valid

    @staticmethod
    def _invalid(backup_id: str, reason: str) -> VerificationReport:
        logger.warning(f"Backup {backup_id} failed verification: {reason}")
        return VerificationReport(backup_id=backup_id, is_valid=False, reason=reason)

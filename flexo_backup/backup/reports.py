"""Read-only access to stored snapshots for historical reporting."""

from collections import Counter
from decimal import Decimal
from typing import List

from ..base import BaseBackupStore
from ..errors import CorruptBackupError
from .codec import BackupCodec, summarize
from .models import BackupStats, MachineProgramRecord
from .verifier import IntegrityVerifier


class ReportDataAdapter:
    def __init__(self, store: BaseBackupStore, codec: BackupCodec, verifier: IntegrityVerifier):
        self.store = store
        self.codec = codec
        self.verifier = verifier

    async def get_data_for_reports(self, backup_id: str) -> List[MachineProgramRecord]:
        """Return the records of a verified backup.

        Raises:
            BackupNotFoundError: unknown backup id
            CorruptBackupError: the artifact failed verification
        """
        stored = await self.store.read(backup_id)
        report = self.verifier.check_stored(stored)
        if not report.is_valid:
            raise CorruptBackupError(f"Backup {backup_id} failed verification: {report.reason}")
        return self.codec.decode(stored.data).payload

    async def get_stats(self, backup_id: str) -> BackupStats:
        records = await self.get_data_for_reports(backup_id)
        summary = summarize(records)
        return BackupStats(
            backup_id=backup_id,
            total_programs=summary["total_records"],
            machine_count=summary["machine_count"],
            status_breakdown=summary["status_breakdown"],
            client_breakdown=dict(Counter(r.cliente for r in records)),
            total_kilos=sum((r.kilos for r in records), Decimal("0")),
            date_range=summary["date_range"],
        )

"""In-process machine-program table used for development and tests."""

import asyncio
from typing import Dict, Iterable, List, Optional, Sequence

from .._utils import logger
from ..backup.models import MachineProgramRecord
from ..base import BaseMachineProgramTable


class InMemoryMachineProgramTable(BaseMachineProgramTable):
    """Live rows kept in a dict keyed by row id.

    ``replace_all`` builds the complete new table aside and swaps it in with a
    single assignment, so a failure while building leaves the old rows intact.
    """

    def __init__(self, records: Optional[Iterable[MachineProgramRecord]] = None):
        self._rows: Dict[int, MachineProgramRecord] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()
        if records:
            self._rows, self._next_id = self._build(records)

    @staticmethod
    def _build(records: Iterable[MachineProgramRecord]):
        rows: Dict[int, MachineProgramRecord] = {}
        pending = []
        for record in records:
            if record.id is None or record.id in rows:
                pending.append(record)
            else:
                rows[record.id] = record.model_copy(deep=True)

        next_id = max(rows, default=0) + 1
        for record in pending:
            # Rows without a usable id get fresh ones after the highest kept id.
            rows[next_id] = record.model_copy(update={"id": next_id}, deep=True)
            next_id += 1
        return rows, next_id

    async def fetch_all(self) -> List[MachineProgramRecord]:
        async with self._lock:
            return [row.model_copy(deep=True) for _, row in sorted(self._rows.items())]

    async def replace_all(self, records: Sequence[MachineProgramRecord]) -> int:
        async with self._lock:
            rows, next_id = self._build(records)
            self._rows, self._next_id = rows, next_id
        logger.info(f"Replaced live machine-program table with {len(rows)} rows")
        return len(rows)

    async def insert(self, record: MachineProgramRecord) -> MachineProgramRecord:
        """Add one live row, assigning an id when it has none."""
        async with self._lock:
            if record.id is None or record.id in self._rows:
                record = record.model_copy(update={"id": self._next_id})
            self._rows[record.id] = record.model_copy(deep=True)
            self._next_id = max(self._next_id, record.id + 1)
            return record

    async def delete(self, record_id: int) -> bool:
        async with self._lock:
            return self._rows.pop(record_id, None) is not None

    async def count(self) -> int:
        return len(self._rows)

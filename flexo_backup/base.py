"""Storage contracts consumed by the backup engine."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .backup.models import BackupMetadata, MachineProgramFilter, MachineProgramRecord


@dataclass(frozen=True)
class StoredArtifact:
    """Artifact bytes together with their index entry."""
    metadata: BackupMetadata
    data: bytes


class BaseBackupStore(ABC):
    """Durable persistence for artifact bytes and the metadata index.

    Implementations must make ``write`` atomic from a reader's point of view
    and remove the index entry before the bytes on ``delete``, so a reader
    never observes a partial artifact.
    """

    @abstractmethod
    async def write(self, metadata: BackupMetadata, data: bytes) -> None:
        """Persist a new artifact. Existing ids are never overwritten."""

    @abstractmethod
    async def read(self, backup_id: str) -> StoredArtifact:
        """Return artifact bytes and metadata or raise BackupNotFoundError."""

    @abstractmethod
    async def read_metadata(self, backup_id: str) -> BackupMetadata:
        """Return the index entry or raise BackupNotFoundError."""

    @abstractmethod
    async def list_metadata(self) -> List[BackupMetadata]:
        """All index entries, newest first. Payloads are not loaded."""

    @abstractmethod
    async def delete(self, backup_id: str) -> bool:
        """Remove an artifact. Returns False if it did not exist."""

    @abstractmethod
    async def exists(self, backup_id: str) -> bool:
        ...

    async def close(self) -> None:
        """Release connections held by the store."""
        return None


class BaseMachineProgramTable(ABC):
    """Read/replace access to the live machine-program table."""

    @abstractmethod
    async def fetch_all(self) -> List[MachineProgramRecord]:
        ...

    async def fetch(self, filter: Optional[MachineProgramFilter] = None) -> List[MachineProgramRecord]:
        """Read the live rows matching ``filter`` (all rows when None)."""
        records = await self.fetch_all()
        if filter is None or filter.is_empty():
            return records
        return [r for r in records if filter.matches(r)]

    @abstractmethod
    async def replace_all(self, records: Sequence[MachineProgramRecord]) -> int:
        """Atomically replace every live row with ``records``.

        Either all rows are replaced or, on any failure, the table is left
        exactly as it was. Returns the number of rows written.
        """

    async def count(self) -> int:
        return len(await self.fetch_all())

    async def close(self) -> None:
        return None

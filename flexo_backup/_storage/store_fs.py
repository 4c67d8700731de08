"""Filesystem backup store with an atomic JSON metadata index."""

import asyncio
import json
from pathlib import Path
from typing import Dict, List

from pydantic import ValidationError

from .._utils import ensure_utc, logger
from ..backup.models import BackupMetadata
from ..backup.utils import atomic_write_bytes, is_safe_backup_id, remove_stale_temp_files
from ..base import BaseBackupStore, StoredArtifact
from ..errors import BackupNotFoundError, BackupValidationError, StoreIOError

INDEX_FILENAME = "index.json"
ARTIFACT_DIRNAME = "artifacts"
ARTIFACT_SUFFIX = ".json"


class FileBackupStore(BaseBackupStore):
    """Store artifacts as ``<root>/artifacts/<id>.json`` plus ``<root>/index.json``.

    Ordering rules keep readers consistent without a transactional index:
    the artifact file is committed before its index entry, and on delete the
    index entry is removed before the file. Readers resolve ids through the
    index only, so they see a complete artifact or none.
    """

    def __init__(self, root_dir: str = "./backups/machines"):
        self.root_dir = Path(root_dir)
        self.artifact_dir = self.root_dir / ARTIFACT_DIRNAME
        self.index_path = self.root_dir / INDEX_FILENAME
        self._index_lock = asyncio.Lock()

        self.artifact_dir.mkdir(parents=True, exist_ok=True)
        remove_stale_temp_files(self.artifact_dir)
        remove_stale_temp_files(self.root_dir)

    def _artifact_path(self, backup_id: str) -> Path:
        if not is_safe_backup_id(backup_id):
            raise BackupValidationError(f"Invalid backup id: {backup_id!r}")
        return self.artifact_dir / f"{backup_id}{ARTIFACT_SUFFIX}"

    def _load_index(self) -> Dict[str, dict]:
        if not self.index_path.exists():
            return {}
        try:
            with open(self.index_path, "r", encoding="utf-8") as f:
                index = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreIOError(f"Failed to read backup index {self.index_path}: {e}") from e
        if not isinstance(index, dict):
            raise StoreIOError(f"Backup index {self.index_path} is not a JSON object")
        return index

    def _save_index(self, index: Dict[str, dict]) -> None:
        data = json.dumps(index, indent=2, ensure_ascii=False).encode("utf-8")
        try:
            atomic_write_bytes(self.index_path, data)
        except OSError as e:
            raise StoreIOError(f"Failed to write backup index {self.index_path}: {e}") from e

    @staticmethod
    def _to_entry(metadata: BackupMetadata) -> dict:
        return metadata.model_dump(mode="json", by_alias=True, exclude={"is_valid"})

    async def write(self, metadata: BackupMetadata, data: bytes) -> None:
        path = self._artifact_path(metadata.backup_id)

        async with self._index_lock:
            index = self._load_index()
            if metadata.backup_id in index:
                raise BackupValidationError(f"Backup already exists: {metadata.backup_id}")

            try:
                atomic_write_bytes(path, data)
            except OSError as e:
                raise StoreIOError(f"Failed to write artifact {metadata.backup_id}: {e}") from e

            index[metadata.backup_id] = self._to_entry(metadata)
            try:
                self._save_index(index)
            except BaseException:
                # Without an index entry the file is unreachable; drop it.
                path.unlink(missing_ok=True)
                raise

        logger.info(f"Stored backup {metadata.backup_id} ({len(data):,} bytes)")

    async def read_metadata(self, backup_id: str) -> BackupMetadata:
        self._artifact_path(backup_id)
        entry = self._load_index().get(backup_id)
        if entry is None:
            raise BackupNotFoundError(backup_id)
        try:
            return BackupMetadata.model_validate(entry)
        except ValidationError as e:
            raise StoreIOError(f"Index entry for {backup_id} is malformed: {e}") from e

    async def read(self, backup_id: str) -> StoredArtifact:
        metadata = await self.read_metadata(backup_id)
        path = self._artifact_path(backup_id)
        try:
            with open(path, "rb") as f:
                data = f.read()
        except FileNotFoundError as e:
            # Deleted between the index lookup and the read.
            raise BackupNotFoundError(backup_id) from e
        except OSError as e:
            raise StoreIOError(f"Failed to read artifact {backup_id}: {e}") from e
        return StoredArtifact(metadata=metadata, data=data)

    async def list_metadata(self) -> List[BackupMetadata]:
        backups = []
        for backup_id, entry in self._load_index().items():
            try:
                backups.append(BackupMetadata.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Skipping malformed index entry {backup_id}: {e}")

        # Sort by creation time (newest first)
        backups.sort(key=lambda b: ensure_utc(b.created_at), reverse=True)
        return backups

    async def delete(self, backup_id: str) -> bool:
        path = self._artifact_path(backup_id)

        async with self._index_lock:
            index = self._load_index()
            if backup_id not in index:
                return False

            del index[backup_id]
            self._save_index(index)

            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                # The entry is already gone from the index, so readers cannot reach the file.
                logger.warning(f"Backup {backup_id} unindexed but file removal failed: {e}")

        logger.info(f"Deleted backup: {backup_id}")
        return True

    async def exists(self, backup_id: str) -> bool:
        if not is_safe_backup_id(backup_id):
            return False
        return backup_id in self._load_index()

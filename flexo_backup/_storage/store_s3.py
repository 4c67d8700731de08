"""S3 object-store backup store (aioboto3)."""

import asyncio
import json
from typing import List, Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError, ConnectionClosedError, EndpointConnectionError
from pydantic import ValidationError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from .._utils import ensure_utc, logger
from ..backup.models import BackupMetadata
from ..backup.utils import is_safe_backup_id
from ..base import BaseBackupStore, StoredArtifact
from ..errors import BackupNotFoundError, BackupValidationError, StoreIOError

TRANSIENT_ERRORS = (EndpointConnectionError, ConnectionClosedError)
MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


def _is_missing(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") in MISSING_KEY_CODES


class S3BackupStore(BaseBackupStore):
    """One object per artifact and one per index entry.

    ``put_object`` is atomic, so readers never see a partial artifact. The
    artifact object is written before its index object and the index object
    is deleted first, mirroring the filesystem store.
    """

    def __init__(
        self,
        bucket: str,
        prefix: str = "machine-backups/",
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        session: Optional[aioboto3.Session] = None,
    ):
        if not bucket:
            raise ValueError("bucket is required")
        self.bucket = bucket
        self.prefix = prefix if not prefix or prefix.endswith("/") else f"{prefix}/"
        self.region = region
        self.endpoint_url = endpoint_url
        self.session = session or aioboto3.Session()
        self._index_lock = asyncio.Lock()

    def _artifact_key(self, backup_id: str) -> str:
        if not is_safe_backup_id(backup_id):
            raise BackupValidationError(f"Invalid backup id: {backup_id!r}")
        return f"{self.prefix}artifacts/{backup_id}.json"

    def _index_key(self, backup_id: str) -> str:
        if not is_safe_backup_id(backup_id):
            raise BackupValidationError(f"Invalid backup id: {backup_id!r}")
        return f"{self.prefix}index/{backup_id}.json"

    def _client(self):
        return self.session.client("s3", region_name=self.region, endpoint_url=self.endpoint_url)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        reraise=True,
    )
    async def _put(self, key: str, body: bytes) -> None:
        async with self._client() as s3:
            await s3.put_object(Bucket=self.bucket, Key=key, Body=body, ContentType="application/json")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        reraise=True,
    )
    async def _get(self, key: str) -> Optional[bytes]:
        async with self._client() as s3:
            try:
                response = await s3.get_object(Bucket=self.bucket, Key=key)
            except ClientError as e:
                if _is_missing(e):
                    return None
                raise
            async with response["Body"] as stream:
                return await stream.read()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        reraise=True,
    )
    async def _delete(self, key: str) -> None:
        async with self._client() as s3:
            await s3.delete_object(Bucket=self.bucket, Key=key)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        reraise=True,
    )
    async def _list_keys(self, prefix: str) -> List[str]:
        keys = []
        async with self._client() as s3:
            paginator = s3.get_paginator("list_objects_v2")
            async for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
        return keys

    async def write(self, metadata: BackupMetadata, data: bytes) -> None:
        artifact_key = self._artifact_key(metadata.backup_id)
        index_key = self._index_key(metadata.backup_id)
        entry = metadata.model_dump_json(by_alias=True, exclude={"is_valid"}).encode("utf-8")

        async with self._index_lock:
            try:
                if await self._get(index_key) is not None:
                    raise BackupValidationError(f"Backup already exists: {metadata.backup_id}")

                await self._put(artifact_key, data)
                try:
                    await self._put(index_key, entry)
                except BaseException:
                    await self._delete(artifact_key)
                    raise
            except (ClientError, BotoCoreError) as e:
                raise StoreIOError(f"Failed to write backup {metadata.backup_id} to S3: {e}") from e

        logger.info(f"Stored backup {metadata.backup_id} in s3://{self.bucket}/{artifact_key} ({len(data):,} bytes)")

    async def read_metadata(self, backup_id: str) -> BackupMetadata:
        index_key = self._index_key(backup_id)
        try:
            raw = await self._get(index_key)
        except (ClientError, BotoCoreError) as e:
            raise StoreIOError(f"Failed to read index entry {backup_id} from S3: {e}") from e
        if raw is None:
            raise BackupNotFoundError(backup_id)
        try:
            return BackupMetadata.model_validate_json(raw)
        except ValidationError as e:
            raise StoreIOError(f"Index entry for {backup_id} is malformed: {e}") from e

    async def read(self, backup_id: str) -> StoredArtifact:
        metadata = await self.read_metadata(backup_id)
        try:
            data = await self._get(self._artifact_key(backup_id))
        except (ClientError, BotoCoreError) as e:
            raise StoreIOError(f"Failed to read artifact {backup_id} from S3: {e}") from e
        if data is None:
            raise BackupNotFoundError(backup_id)
        return StoredArtifact(metadata=metadata, data=data)

    async def list_metadata(self) -> List[BackupMetadata]:
        try:
            keys = await self._list_keys(f"{self.prefix}index/")
        except (ClientError, BotoCoreError) as e:
            raise StoreIOError(f"Failed to list backups in S3: {e}") from e

        backups = []
        for key in keys:
            try:
                raw = await self._get(key)
                if raw is None:
                    continue
                backups.append(BackupMetadata.model_validate_json(raw))
            except (ClientError, BotoCoreError, ValidationError, json.JSONDecodeError) as e:
                logger.warning(f"Skipping unreadable index entry {key}: {e}")

        # Sort by creation time (newest first)
        backups.sort(key=lambda b: ensure_utc(b.created_at), reverse=True)
        return backups

    async def delete(self, backup_id: str) -> bool:
        index_key = self._index_key(backup_id)
        artifact_key = self._artifact_key(backup_id)

        async with self._index_lock:
            try:
                if await self._get(index_key) is None:
                    return False
                await self._delete(index_key)
                await self._delete(artifact_key)
            except (ClientError, BotoCoreError) as e:
                raise StoreIOError(f"Failed to delete backup {backup_id} from S3: {e}") from e

        logger.info(f"Deleted backup: {backup_id}")
        return True

    async def exists(self, backup_id: str) -> bool:
        if not is_safe_backup_id(backup_id):
            return False
        try:
            return await self._get(self._index_key(backup_id)) is not None
        except (ClientError, BotoCoreError) as e:
            raise StoreIOError(f"Failed to query S3 for {backup_id}: {e}") from e

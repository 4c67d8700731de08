"""Redis-backed live machine-program table for production deployments."""

import json
from typing import Any, List, Optional, Sequence

import redis.asyncio as aioredis
from pydantic import ValidationError
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.retry import Retry

from .._utils import logger
from ..backup.models import MachineProgramRecord
from ..base import BaseMachineProgramTable
from ..errors import StoreIOError


class RedisMachineProgramTable(BaseMachineProgramTable):
    """All rows live in one hash ``<prefix>records`` (row id -> JSON).

    ``replace_all`` runs DEL + HSET + SET inside a MULTI/EXEC transaction, so
    Redis applies the whole replacement or nothing.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        redis_password: Optional[str] = None,
        key_prefix: str = "flexo:machine_programs:",
        client: Optional[Any] = None,
        max_connections: int = 20,
        socket_timeout: float = 5.0,
    ):
        self.redis_url = redis_url
        self.redis_password = redis_password
        self.key_prefix = key_prefix
        self.max_connections = max_connections
        self.socket_timeout = socket_timeout
        self._records_key = f"{key_prefix}records"
        self._next_id_key = f"{key_prefix}next_id"
        self._redis_client = client
        self._connection_pool = None

    async def _ensure_initialized(self):
        if self._redis_client is not None:
            return

        retry = Retry(
            ExponentialBackoff(cap=10, base=1),
            retries=3,
            supported_errors=(RedisConnectionError, TimeoutError, ConnectionError),
        )
        self._connection_pool = aioredis.ConnectionPool.from_url(
            self.redis_url,
            password=self.redis_password,
            max_connections=self.max_connections,
            socket_timeout=self.socket_timeout,
            decode_responses=False,
            retry=retry,
        )
        self._redis_client = aioredis.Redis(connection_pool=self._connection_pool)

        try:
            await self._redis_client.ping()
            logger.info(f"Connected to Redis machine-program table at {self.key_prefix}")
        except RedisError as e:
            logger.error(f"Redis connection failed: {e}")
            raise StoreIOError(f"Cannot connect to Redis: {e}") from e

    @staticmethod
    def _serialize(record: MachineProgramRecord) -> bytes:
        return record.model_dump_json(by_alias=True).encode("utf-8")

    @staticmethod
    def _deserialize(data: bytes) -> MachineProgramRecord:
        return MachineProgramRecord.model_validate_json(data)

    async def fetch_all(self) -> List[MachineProgramRecord]:
        await self._ensure_initialized()
        try:
            raw = await self._redis_client.hgetall(self._records_key)
        except RedisError as e:
            raise StoreIOError(f"Failed to read machine programs from Redis: {e}") from e

        records = []
        for key, value in raw.items():
            try:
                records.append(self._deserialize(value))
            except (ValidationError, json.JSONDecodeError, UnicodeDecodeError) as e:
                # A snapshot missing rows would later be restored over the full table.
                logger.error(f"Unreadable machine program {key!r} in {self._records_key}: {e}")
                raise StoreIOError(f"Machine program {key!r} does not match the record schema: {e}") from e
        records.sort(key=lambda r: r.id or 0)
        return records

    def _assign_ids(self, records: Sequence[MachineProgramRecord]) -> List[MachineProgramRecord]:
        next_id = max((r.id for r in records if r.id is not None), default=0) + 1
        used = set()
        rows = []
        for record in records:
            if record.id is None or record.id in used:
                record = record.model_copy(update={"id": next_id})
                next_id += 1
            used.add(record.id)
            rows.append(record)
        return rows

    async def replace_all(self, records: Sequence[MachineProgramRecord]) -> int:
        await self._ensure_initialized()
        rows = self._assign_ids(records)
        mapping = {str(r.id): self._serialize(r) for r in rows}
        next_id = max((r.id for r in rows), default=0) + 1

        try:
            async with self._redis_client.pipeline(transaction=True) as pipe:
                pipe.delete(self._records_key)
                if mapping:
                    pipe.hset(self._records_key, mapping=mapping)
                pipe.set(self._next_id_key, next_id)
                await pipe.execute()
        except RedisError as e:
            logger.error(f"Redis transaction failed while replacing machine programs: {e}")
            raise StoreIOError(f"Failed to replace machine programs: {e}") from e

        logger.info(f"Replaced live machine-program table with {len(rows)} rows")
        return len(rows)

    async def count(self) -> int:
        await self._ensure_initialized()
        try:
            return await self._redis_client.hlen(self._records_key)
        except RedisError as e:
            raise StoreIOError(f"Failed to count machine programs: {e}") from e

    async def close(self) -> None:
        if self._redis_client is not None:
            await self._redis_client.aclose()
            self._redis_client = None
        if self._connection_pool is not None:
            await self._connection_pool.disconnect()
            self._connection_pool = None

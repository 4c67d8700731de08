"""Tests for the Redis-backed machine-program table."""

import json
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import RedisError

from flexo_backup._storage.table_redis import RedisMachineProgramTable
from flexo_backup.backup.manager import BackupManager
from flexo_backup.backup.models import BackupRequest
from flexo_backup.errors import BackupErrorKind, StoreIOError
from tests.storage.base import BaseMachineTableTestSuite
from tests.utils import FakeRedis, make_record, sample_records


class TestRedisTableContract(BaseMachineTableTestSuite):
    """Redis table contract tests with a dict-backed client."""

    @pytest.fixture
    def table(self):
        return RedisMachineProgramTable(key_prefix="test:programs:", client=FakeRedis())


@pytest.mark.asyncio
async def test_replace_all_keys_and_counter():
    client = FakeRedis()
    table = RedisMachineProgramTable(key_prefix="test:programs:", client=client)

    await table.replace_all(sample_records())

    assert set(client.data["test:programs:records"]) == {b"1", b"2", b"3"}
    assert client.data["test:programs:next_id"] == b"4"


@pytest.mark.asyncio
async def test_failed_transaction_leaves_rows_unchanged():
    client = FakeRedis()
    table = RedisMachineProgramTable(key_prefix="test:programs:", client=client)
    await table.replace_all(sample_records())

    client.fail_on_execute = True
    with pytest.raises(StoreIOError):
        await table.replace_all([make_record(id=99, articulo="X")])

    assert [r.articulo for r in await table.fetch_all()] == ["F1", "F2", "F3"]


@pytest.mark.asyncio
async def test_read_errors_become_store_errors():
    client = FakeRedis()
    client.hgetall = AsyncMock(side_effect=RedisError("connection reset"))
    table = RedisMachineProgramTable(client=client)

    with pytest.raises(StoreIOError):
        await table.fetch_all()


def _add_legacy_column(client, key=b"2"):
    rows = client.data["test:programs:records"]
    row = json.loads(rows[key])
    row["legacyColumn"] = "x"
    rows[key] = json.dumps(row).encode()


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", [b"{broken", b"\xff\xfe"])
async def test_unreadable_row_fails_the_read(raw):
    client = FakeRedis()
    table = RedisMachineProgramTable(key_prefix="test:programs:", client=client)
    await table.replace_all(sample_records())
    client.data["test:programs:records"][b"2"] = raw

    with pytest.raises(StoreIOError, match="b'2'"):
        await table.fetch_all()


@pytest.mark.asyncio
async def test_schema_drift_fails_the_read():
    client = FakeRedis()
    table = RedisMachineProgramTable(key_prefix="test:programs:", client=client)
    await table.replace_all(sample_records())
    _add_legacy_column(client)

    with pytest.raises(StoreIOError, match="b'2'"):
        await table.fetch_all()


@pytest.mark.asyncio
async def test_drifted_row_blocks_backup_and_safety_restore(store):
    client = FakeRedis()
    table = RedisMachineProgramTable(key_prefix="test:programs:", client=client)
    await table.replace_all(sample_records())
    manager = BackupManager(store, table)
    good = await manager.create_backup(BackupRequest())
    _add_legacy_column(client)
    live_before = dict(client.data["test:programs:records"])

    created = await manager.create_backup(BackupRequest())
    restored = await manager.restore_backup(good.backup_id, create_safety_backup_first=True)

    assert created.success is False
    assert created.error == BackupErrorKind.STORE_IO_ERROR
    assert restored.success is False
    assert restored.error == BackupErrorKind.SAFETY_BACKUP_FAILED
    assert [b.backup_id for b in await manager.list_backups(verify=False)] == [good.backup_id]
    assert client.data["test:programs:records"] == live_before


@pytest.mark.asyncio
async def test_close_releases_client():
    client = FakeRedis()
    table = RedisMachineProgramTable(client=client)

    await table.close()

    assert client.closed is True

"""Tests for the restore engine."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from flexo_backup.backup.models import BackupRequest, BackupSource
from flexo_backup.backup.restore import RestoreState
from flexo_backup.errors import BackupErrorKind, StoreIOError
from tests.utils import make_record


@pytest.mark.asyncio
async def test_round_trip(manager, table, records):
    created = await manager.create_backup(BackupRequest())
    await table.replace_all([make_record(id=50, articulo="Z9")])

    result = await manager.restore_backup(created.backup_id)

    assert result.success is True
    assert result.restored_records == 3
    assert result.restored_at is not None
    assert await table.fetch_all() == records


@pytest.mark.asyncio
async def test_safety_backup_taken_first(manager, table):
    created = await manager.create_backup(BackupRequest())
    await table.delete(1)

    result = await manager.restore_backup(created.backup_id, create_safety_backup_first=True)

    assert result.pre_restore_backup_id is not None
    safety = await manager.store.read_metadata(result.pre_restore_backup_id)
    assert safety.source == BackupSource.SAFETY
    assert safety.total_records == 2


@pytest.mark.asyncio
async def test_no_safety_backup_when_not_requested(manager):
    created = await manager.create_backup(BackupRequest())

    result = await manager.restore_backup(created.backup_id, create_safety_backup_first=False)

    assert result.success is True
    assert result.pre_restore_backup_id is None
    assert len(await manager.list_backups(verify=False)) == 1


@pytest.mark.asyncio
async def test_unknown_backup(manager, table, records):
    result = await manager.restore_backup("backup_20240101_000000_deadbeef")

    assert result.success is False
    assert result.error == BackupErrorKind.NOT_FOUND
    assert await table.fetch_all() == records
    # No safety backup for an id that does not exist
    assert await manager.list_backups(verify=False) == []


@pytest.mark.asyncio
async def test_corrupt_backup_refused(manager, table, store):
    created = await manager.create_backup(BackupRequest())
    path = store.artifact_dir / f"{created.backup_id}.json"
    path.write_bytes(path.read_bytes().replace(b"OT-1003", b"OT-9003"))
    await table.delete(3)
    before = await table.fetch_all()

    result = await manager.restore_backup(created.backup_id)

    assert result.success is False
    assert result.error == BackupErrorKind.CORRUPT_BACKUP
    assert await table.fetch_all() == before
    assert manager.restorer.state == RestoreState.IDLE


@pytest.mark.asyncio
async def test_safety_backup_failure_aborts(manager, table):
    created = await manager.create_backup(BackupRequest())
    await table.delete(2)
    before = await table.fetch_all()
    manager.snapshots.capture = AsyncMock(side_effect=StoreIOError("disk full"))

    result = await manager.restore_backup(created.backup_id)

    assert result.success is False
    assert result.error == BackupErrorKind.SAFETY_BACKUP_FAILED
    assert await table.fetch_all() == before


@pytest.mark.asyncio
async def test_failed_replace_leaves_table_unchanged(manager, table):
    created = await manager.create_backup(BackupRequest())
    await table.delete(1)
    before = await table.fetch_all()
    table.replace_all = AsyncMock(side_effect=RuntimeError("connection dropped mid-write"))

    result = await manager.restore_backup(created.backup_id, create_safety_backup_first=False)

    assert result.success is False
    assert result.error == BackupErrorKind.STORE_IO_ERROR
    assert await table.fetch_all() == before


@pytest.mark.asyncio
async def test_concurrent_restores_are_serialized(manager, table):
    first = await manager.create_backup(BackupRequest())
    await table.replace_all([make_record(id=1, articulo="SOLO")])
    second = await manager.create_backup(BackupRequest())

    original_replace = table.replace_all
    active = 0
    overlaps = []

    async def slow_replace(records):
        nonlocal active
        active += 1
        overlaps.append(active)
        await asyncio.sleep(0.01)
        try:
            return await original_replace(records)
        finally:
            active -= 1

    table.replace_all = slow_replace

    results = await asyncio.gather(
        manager.restore_backup(first.backup_id, create_safety_backup_first=False),
        manager.restore_backup(second.backup_id, create_safety_backup_first=False),
    )

    assert all(r.success for r in results)
    assert max(overlaps) == 1
    # gather starts them in order, so the second restore wins
    assert [r.articulo for r in await table.fetch_all()] == ["SOLO"]


@pytest.mark.asyncio
async def test_cancelled_restore_leaves_table_unchanged(manager, table):
    created = await manager.create_backup(BackupRequest())
    await table.delete(1)
    before = await table.fetch_all()

    started = asyncio.Event()

    async def hanging_read(backup_id):
        started.set()
        await asyncio.sleep(3600)

    manager.restorer.store.read = hanging_read
    task = asyncio.create_task(manager.restore_backup(created.backup_id, create_safety_backup_first=False))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert await table.fetch_all() == before
    assert manager.restorer.state == RestoreState.IDLE


@pytest.mark.asyncio
async def test_restores_the_bytes_it_verified(manager, table, store, records):
    created = await manager.create_backup(BackupRequest())
    await table.replace_all([make_record(id=50, articulo="Z9")])
    path = store.artifact_dir / f"{created.backup_id}.json"
    original_read = store.read
    reads = []

    async def read_then_tamper(backup_id):
        stored = await original_read(backup_id)
        reads.append(backup_id)
        path.write_bytes(path.read_bytes().replace(b"OT-1003", b"OT-9003"))
        return stored

    store.read = read_then_tamper

    result = await manager.restore_backup(created.backup_id, create_safety_backup_first=False)

    assert result.success is True
    assert reads == [created.backup_id]
    assert await table.fetch_all() == records

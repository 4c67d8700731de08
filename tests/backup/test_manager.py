"""Tests for BackupManager."""

import pytest

from flexo_backup._storage.store_fs import FileBackupStore
from flexo_backup._storage.table_memory import InMemoryMachineProgramTable
from flexo_backup.backup.manager import BackupManager
from flexo_backup.backup.models import BackupRequest
from flexo_backup.config import BackupConfig, StoreConfig


@pytest.mark.asyncio
async def test_backup_restore_export_import_scenario(manager, table):
    """Create, lose a row, restore, then move the backup through an export file."""
    created = await manager.create_backup(BackupRequest(description="Turno noche"))
    assert created.metadata.total_records == 3
    assert created.metadata.machine_count == 2

    await table.delete(2)
    restored = await manager.restore_backup(created.backup_id)
    assert restored.success is True
    assert sorted(r.articulo for r in await table.fetch_all()) == ["F1", "F2", "F3"]

    exported = await manager.export_backup(created.backup_id, "json")
    imported = await manager.import_backup(exported.content, exported.filename)
    assert imported.success is True
    assert imported.metadata.total_records == 3
    assert imported.metadata.machine_count == 2

    listed = {b.backup_id: b for b in await manager.list_backups()}
    assert created.backup_id in listed
    assert imported.backup_id in listed
    assert listed[created.backup_id].is_valid is True
    assert listed[imported.backup_id].is_valid is True


@pytest.mark.asyncio
async def test_list_reports_corrupt_entry_without_failing(manager, store):
    good = await manager.create_backup(BackupRequest(description="good"))
    bad = await manager.create_backup(BackupRequest(description="bad"))
    (store.artifact_dir / f"{bad.backup_id}.json").write_bytes(b"{}")

    listed = {b.backup_id: b.is_valid for b in await manager.list_backups(verify=True)}

    assert listed == {good.backup_id: True, bad.backup_id: False}


@pytest.mark.asyncio
async def test_list_without_verification(manager):
    await manager.create_backup(BackupRequest())

    listed = await manager.list_backups(verify=False)

    assert len(listed) == 1
    assert listed[0].is_valid is None


@pytest.mark.asyncio
async def test_get_backup_and_verify(manager):
    created = await manager.create_backup(BackupRequest())

    metadata = await manager.get_backup(created.backup_id)
    report = await manager.verify_backup(created.backup_id)

    assert metadata.is_valid is True
    assert report.is_valid is True


@pytest.mark.asyncio
async def test_delete_backup(manager):
    created = await manager.create_backup(BackupRequest())

    assert await manager.delete_backup(created.backup_id) is True
    assert await manager.delete_backup(created.backup_id) is False
    assert await manager.list_backups() == []


def test_from_config(tmp_path):
    config = BackupConfig(store=StoreConfig(root_dir=str(tmp_path)), max_import_bytes=1024)

    manager = BackupManager.from_config(config)

    assert isinstance(manager.store, FileBackupStore)
    assert isinstance(manager.table, InMemoryMachineProgramTable)
    assert manager.transfer.max_import_bytes == 1024

"""Global pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from flexo_backup._storage.store_fs import FileBackupStore
from flexo_backup._storage.table_memory import InMemoryMachineProgramTable
from flexo_backup.backup.manager import BackupManager
from tests.utils import sample_records


@pytest.fixture
def records():
    return sample_records()


@pytest.fixture
def temp_backup_dir(tmp_path):
    return tmp_path / "backups"


@pytest.fixture
def store(temp_backup_dir):
    return FileBackupStore(str(temp_backup_dir))


@pytest.fixture
def table(records):
    return InMemoryMachineProgramTable(records)


@pytest.fixture
def manager(store, table):
    return BackupManager(store, table)

"""Storage module with lazy loading support."""

from typing import TYPE_CHECKING

from .factory import StorageFactory, _register_backends

if TYPE_CHECKING:
    from .store_fs import FileBackupStore
    from .store_s3 import S3BackupStore
    from .table_memory import InMemoryMachineProgramTable
    from .table_redis import RedisMachineProgramTable


def __getattr__(name):
    """Lazy import backends so aioboto3 and redis load only when used."""
    if name == "FileBackupStore":
        from .store_fs import FileBackupStore
        return FileBackupStore
    elif name == "S3BackupStore":
        from .store_s3 import S3BackupStore
        return S3BackupStore
    elif name == "InMemoryMachineProgramTable":
        from .table_memory import InMemoryMachineProgramTable
        return InMemoryMachineProgramTable
    elif name == "RedisMachineProgramTable":
        from .table_redis import RedisMachineProgramTable
        return RedisMachineProgramTable
    else:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = [
    "StorageFactory",
    "_register_backends",
    "FileBackupStore",
    "S3BackupStore",
    "InMemoryMachineProgramTable",
    "RedisMachineProgramTable",
]

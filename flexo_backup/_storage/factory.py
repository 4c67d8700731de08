"""Backend factory for backup stores and live tables."""

from typing import Callable, Dict, Type

from ..base import BaseBackupStore, BaseMachineProgramTable
from ..config import StoreConfig, TableConfig


class StorageFactory:
    """Create backends by name, importing heavy client libraries lazily."""

    _store_backends: Dict[str, Callable[[], Type[BaseBackupStore]]] = {}
    _table_backends: Dict[str, Callable[[], Type[BaseMachineProgramTable]]] = {}

    ALLOWED_STORE = {"filesystem", "s3"}
    ALLOWED_TABLE = {"memory", "redis"}

    @classmethod
    def register_store(cls, name: str, backend_loader: Callable[[], Type[BaseBackupStore]]) -> None:
        """Register a backup store backend.

        Raises:
            ValueError: If backend name not in allowed list
        """
        if name not in cls.ALLOWED_STORE:
            raise ValueError(f"Backend {name} not in allowed store backends: {cls.ALLOWED_STORE}")
        cls._store_backends[name] = backend_loader

    @classmethod
    def register_table(cls, name: str, backend_loader: Callable[[], Type[BaseMachineProgramTable]]) -> None:
        if name not in cls.ALLOWED_TABLE:
            raise ValueError(f"Backend {name} not in allowed table backends: {cls.ALLOWED_TABLE}")
        cls._table_backends[name] = backend_loader

    @classmethod
    def create_backup_store(cls, config: StoreConfig) -> BaseBackupStore:
        if config.backend not in cls._store_backends:
            raise ValueError(f"Unknown store backend: {config.backend}")

        store_class = cls._store_backends[config.backend]()
        if config.backend == "s3":
            return store_class(
                bucket=config.s3_bucket,
                prefix=config.s3_prefix,
                region=config.s3_region,
                endpoint_url=config.s3_endpoint_url,
            )
        return store_class(root_dir=config.root_dir)

    @classmethod
    def create_machine_table(cls, config: TableConfig) -> BaseMachineProgramTable:
        if config.backend not in cls._table_backends:
            raise ValueError(f"Unknown table backend: {config.backend}")

        table_class = cls._table_backends[config.backend]()
        if config.backend == "redis":
            return table_class(
                redis_url=config.redis_url,
                redis_password=config.redis_password,
                key_prefix=config.key_prefix,
            )
        return table_class()


def _get_file_store():
    from .store_fs import FileBackupStore
    return FileBackupStore


def _get_s3_store():
    from .store_s3 import S3BackupStore
    return S3BackupStore


def _get_memory_table():
    from .table_memory import InMemoryMachineProgramTable
    return InMemoryMachineProgramTable


def _get_redis_table():
    from .table_redis import RedisMachineProgramTable
    return RedisMachineProgramTable


def _register_backends():
    """Register built-in backends with lazy loaders."""
    StorageFactory.register_store("filesystem", _get_file_store)
    StorageFactory.register_store("s3", _get_s3_store)
    StorageFactory.register_table("memory", _get_memory_table)
    StorageFactory.register_table("redis", _get_redis_table)


_register_backends()

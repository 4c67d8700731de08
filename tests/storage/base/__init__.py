"""Base test suites for all storage types."""

from .store_suite import BaseBackupStoreTestSuite, StoreContract
from .table_suite import BaseMachineTableTestSuite

__all__ = [
    "BaseBackupStoreTestSuite",
    "BaseMachineTableTestSuite",
    "StoreContract",
]

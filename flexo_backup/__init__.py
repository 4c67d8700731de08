from .backup import BackupManager
from .config import BackupConfig, StoreConfig, TableConfig, SchedulerConfig

__version__ = "0.3.1"
__author__ = "FlexoAPP Team"
__url__ = "https://github.com/flexoapp/flexo-backup"

__all__ = [
    "BackupManager",
    "BackupConfig",
    "StoreConfig",
    "TableConfig",
    "SchedulerConfig",
]

"""Dependency injection for FastAPI."""

from typing import TYPE_CHECKING, Optional

from fastapi import Request

if TYPE_CHECKING:
    from flexo_backup.backup import BackupManager, DailyBackupScheduler


async def get_backup_manager(request: Request) -> "BackupManager":
    """Get BackupManager instance from app state."""
    return request.app.state.backup_manager


async def get_scheduler(request: Request) -> Optional["DailyBackupScheduler"]:
    """Get the daily scheduler from app state if it is running."""
    return getattr(request.app.state, "scheduler", None)

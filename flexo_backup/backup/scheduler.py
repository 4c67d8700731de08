"""Unattended daily backups with retention pruning."""

import asyncio
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, List, Optional

from .._utils import ensure_utc, logger, utc_now
from ..config import SchedulerConfig
from .models import BackupResult, BackupSource
from .snapshot import daily_description

if TYPE_CHECKING:
    from .manager import BackupManager


class DailyBackupScheduler:
    """Run ``manager.create_daily_backup`` once per interval until stopped."""

    def __init__(
        self,
        manager: "BackupManager",
        interval_seconds: float = 24 * 3600,
        initial_delay_seconds: float = 300,
        retention_days: int = 30,
    ):
        self.manager = manager
        self.interval_seconds = interval_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self.retention_days = retention_days
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_config(cls, manager: "BackupManager", config: SchedulerConfig) -> "DailyBackupScheduler":
        return cls(
            manager,
            interval_seconds=config.interval_hours * 3600,
            initial_delay_seconds=config.initial_delay_seconds,
            retention_days=config.retention_days,
        )

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._stop_event.clear()
            self._task = asyncio.create_task(self._run_loop())
            logger.info(
                f"Daily backup scheduler started (first run in {self.initial_delay_seconds:.0f}s, "
                f"every {self.interval_seconds:.0f}s)"
            )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("Daily backup scheduler stopped")

    async def _wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout``; True if stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def _run_loop(self) -> None:
        if await self._wait(self.initial_delay_seconds):
            return
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except Exception:
                logger.exception("Daily backup tick failed")
            if await self._wait(self.interval_seconds):
                return

    async def run_once(self, now: Optional[datetime] = None) -> Optional[BackupResult]:
        """One tick: create today's daily backup if missing, then prune old ones.

        Returns:
            The create result, or None when today's backup already existed
        """
        now = now or utc_now()
        backups = await self.manager.list_backups(verify=False)

        result = None
        description = daily_description(now)
        if any(b.description == description for b in backups):
            logger.info(f"Daily backup for {now:%Y-%m-%d} already exists, skipping")
        else:
            result = await self.manager.create_daily_backup(now=now)
            if result.success:
                logger.info(f"Daily backup created: {result.backup_id}")
            else:
                logger.error(f"Daily backup failed: {result.message}")

        await self.prune(now, backups)
        return result

    async def prune(self, now: Optional[datetime] = None, backups=None) -> List[str]:
        """Delete daily backups older than the retention window.

        Manual, safety and imported backups are never pruned.
        """
        if self.retention_days <= 0:
            return []

        now = now or utc_now()
        if backups is None:
            backups = await self.manager.list_backups(verify=False)
        cutoff = ensure_utc(now) - timedelta(days=self.retention_days)

        removed = []
        for backup in backups:
            if backup.source != BackupSource.DAILY or ensure_utc(backup.created_at) >= cutoff:
                continue
            if await self.manager.delete_backup(backup.backup_id):
                removed.append(backup.backup_id)

        if removed:
            logger.info(f"Pruned {len(removed)} daily backup(s) older than {self.retention_days} days")
        return removed

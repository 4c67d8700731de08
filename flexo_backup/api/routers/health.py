"""Health check endpoints."""

import asyncio
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException

from flexo_backup.backup import BackupManager

from ..dependencies import get_backup_manager, get_scheduler
from ..models import HealthStatus

router = APIRouter(prefix="/health", tags=["health"])


async def check_store(manager: BackupManager) -> bool:
    """Check that the backup index can be read."""
    try:
        await manager.store.list_metadata()
        return True
    except Exception:
        return False


async def check_table(manager: BackupManager) -> bool:
    """Check that the live machine-program table answers."""
    try:
        await manager.table.count()
        return True
    except Exception:
        return False


@router.get("", response_model=HealthStatus)
async def health_check(
    manager: BackupManager = Depends(get_backup_manager),
    scheduler=Depends(get_scheduler),
) -> HealthStatus:
    store_ok, table_ok = await asyncio.gather(check_store(manager), check_table(manager))
    scheduler_ok = scheduler is None or scheduler.running

    if store_ok and table_ok and scheduler_ok:
        status = "healthy"
    elif not store_ok and not table_ok:
        status = "unhealthy"
    else:
        status = "degraded"

    return HealthStatus(status=status, store=store_ok, table=table_ok, scheduler=scheduler_ok)


@router.get("/ready")
async def readiness_probe(
    manager: BackupManager = Depends(get_backup_manager),
    scheduler=Depends(get_scheduler),
) -> Dict[str, str]:
    """Kubernetes readiness probe."""
    health = await health_check(manager, scheduler)
    if health.status == "unhealthy":
        raise HTTPException(status_code=503, detail="Service not ready")
    return {"status": "ready"}


@router.get("/live")
async def liveness_probe() -> Dict[str, str]:
    """Kubernetes liveness probe."""
    return {"status": "alive"}

"""Machine-program backup and restore API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import JSONResponse, Response

from flexo_backup._utils import logger
from flexo_backup.backup import BackupManager
from flexo_backup.backup.models import BackupRequest, RestoreRequest
from flexo_backup.errors import BackupNotFoundError, BackupValidationError

from ..config import settings
from ..dependencies import get_backup_manager
from ..exceptions import status_for
from ..models import ApiResponse

router = APIRouter(prefix="/machine-backup", tags=["machine-backup"])


def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


def _result_response(result, data=None) -> JSONResponse:
    """Envelope for create/daily/import/restore results, status from the error kind."""
    body = ApiResponse(
        success=result.success,
        data=data if data is not None else _dump(result),
        message=result.message,
        error=result.error.value if result.error else None,
    )
    status_code = 200 if result.success else status_for(result.error)
    return JSONResponse(status_code=status_code, content=body.model_dump())


@router.post("/create")
async def create_backup(
    request: Optional[BackupRequest] = None,
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> JSONResponse:
    """Capture the live machine-program table."""
    result = await backup_manager.create_backup(request or BackupRequest())
    return _result_response(result)


@router.get("/list", response_model=ApiResponse)
async def list_backups(
    verify: bool = Query(True, description="Re-check each artifact and fill isValid"),
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> ApiResponse:
    backups = await backup_manager.list_backups(verify=verify)
    return ApiResponse(
        success=True,
        data=[_dump(b) for b in backups],
        message=f"{len(backups)} backups found",
    )


@router.post("/restore/{backup_id}")
async def restore_backup(
    backup_id: str,
    request: Optional[RestoreRequest] = None,
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> JSONResponse:
    """Restore a backup over the live table, optionally after a safety backup."""
    request = request or RestoreRequest()
    result = await backup_manager.restore_backup(
        backup_id, create_safety_backup_first=request.create_backup_before_restore
    )
    return _result_response(result)


@router.delete("/{backup_id}", response_model=ApiResponse)
async def delete_backup(
    backup_id: str,
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> ApiResponse:
    deleted = await backup_manager.delete_backup(backup_id)

    if not deleted:
        raise BackupNotFoundError(backup_id)

    return ApiResponse(success=True, message=f"Backup deleted: {backup_id}")


@router.get("/{backup_id}/data", response_model=ApiResponse)
async def get_backup_data(
    backup_id: str,
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> ApiResponse:
    """Records of a verified backup, for historical reports."""
    records = await backup_manager.get_data_for_reports(backup_id)
    return ApiResponse(
        success=True,
        data=[_dump(r) for r in records],
        message=f"{len(records)} programs in backup {backup_id}",
    )


@router.post("/daily")
async def create_daily_backup(
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> JSONResponse:
    result = await backup_manager.create_daily_backup()
    return _result_response(result)


@router.get("/{backup_id}/verify", response_model=ApiResponse)
async def verify_backup(
    backup_id: str,
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> ApiResponse:
    # Unknown ids are a 404, not an invalid backup.
    if not await backup_manager.store.exists(backup_id):
        raise BackupNotFoundError(backup_id)

    report = await backup_manager.verify_backup(backup_id)
    return ApiResponse(
        success=True,
        data=_dump(report),
        message="Backup is valid" if report.is_valid else f"Backup is invalid: {report.reason}",
    )


@router.get("/{backup_id}/export")
async def export_backup(
    backup_id: str,
    format: str = Query("zip", description="zip or json"),
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> Response:
    """Download a backup as a portable file."""
    exported = await backup_manager.export_backup(backup_id, format)
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f"attachment; filename={exported.filename}"},
    )


@router.post("/import")
async def import_backup(
    file: UploadFile = File(...),
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> JSONResponse:
    """Import an exported ``.zip`` or ``.json`` backup under a new id."""
    limit = settings.max_upload_bytes or backup_manager.transfer.max_import_bytes
    content = await file.read(limit + 1)
    if len(content) > limit:
        raise BackupValidationError(f"Upload exceeds {limit:,} bytes")

    logger.info(f"Received backup upload {file.filename} ({len(content):,} bytes)")
    result = await backup_manager.import_backup(content, file.filename)
    return _result_response(result)


@router.get("/{backup_id}/stats", response_model=ApiResponse)
async def get_backup_stats(
    backup_id: str,
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> ApiResponse:
    stats = await backup_manager.get_stats(backup_id)
    return ApiResponse(success=True, data=_dump(stats), message=f"Statistics for backup {backup_id}")

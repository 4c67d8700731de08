"""Map backup errors onto HTTP responses."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from flexo_backup._utils import logger
from flexo_backup.errors import BackupError, BackupErrorKind

STATUS_BY_KIND = {
    BackupErrorKind.NOT_FOUND: HTTP_404_NOT_FOUND,
    BackupErrorKind.VALIDATION_ERROR: HTTP_400_BAD_REQUEST,
    BackupErrorKind.UNSUPPORTED_FORMAT: HTTP_400_BAD_REQUEST,
    BackupErrorKind.UNSUPPORTED_VERSION: HTTP_400_BAD_REQUEST,
    BackupErrorKind.EMPTY_SNAPSHOT: HTTP_400_BAD_REQUEST,
    BackupErrorKind.CORRUPT_BACKUP: HTTP_400_BAD_REQUEST,
    BackupErrorKind.SAFETY_BACKUP_FAILED: HTTP_400_BAD_REQUEST,
    BackupErrorKind.STORE_IO_ERROR: HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(kind) -> int:
    return STATUS_BY_KIND.get(kind, HTTP_500_INTERNAL_SERVER_ERROR)


async def backup_error_handler(request: Request, exc: BackupError) -> JSONResponse:
    if status_for(exc.kind) >= HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=status_for(exc.kind),
        content={"success": False, "data": None, "message": exc.message, "error": exc.kind.value},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BackupError, backup_error_handler)

"""FastAPI application for flexo-backup."""

import dataclasses
import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flexo_backup.backup import BackupManager, DailyBackupScheduler
from flexo_backup.config import BackupConfig

from .config import settings
from .exceptions import register_exception_handlers
from .routers import backup, health

# App-managed logging: attach our own stdout handler and don't propagate,
# so INFO lines show up regardless of uvicorn's logging config.
backup_logger = logging.getLogger("flexo-backup")
backup_logger.setLevel(logging.INFO)
backup_logger.propagate = False
backup_logger.handlers.clear()

console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.INFO)
console_handler.setFormatter(logging.Formatter(
    '%(asctime)s - [%(name)s] - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
))
backup_logger.addHandler(console_handler)

if os.getenv("DISABLE_APP_LOGGING", "false").lower() == "true":
    backup_logger.handlers.clear()
    backup_logger.propagate = True  # Fall back to server-managed pattern

logger = logging.getLogger(__name__)


def build_config() -> BackupConfig:
    """Environment config with the API settings layered on top."""
    config = BackupConfig.from_env()

    store_overrides = {}
    if settings.backup_store_backend:
        store_overrides["backend"] = settings.backup_store_backend
    if settings.backup_dir:
        store_overrides["root_dir"] = settings.backup_dir

    table_overrides = {}
    if settings.machine_table_backend:
        table_overrides["backend"] = settings.machine_table_backend
    if settings.redis_url:
        table_overrides["redis_url"] = settings.redis_url
        table_overrides["redis_password"] = settings.redis_password

    return dataclasses.replace(
        config,
        store=dataclasses.replace(config.store, **store_overrides),
        table=dataclasses.replace(config.table, **table_overrides),
        scheduler=dataclasses.replace(
            config.scheduler, enabled=config.scheduler.enabled and settings.backup_scheduler_enabled
        ),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage backup manager and scheduler lifecycle."""
    logger.info("Initializing backup manager...")
    config = build_config()

    try:
        app.state.backup_manager = BackupManager.from_config(config)
    except Exception as e:
        logger.error(f"Failed to initialize backup manager: {e}")
        raise

    app.state.scheduler = None
    if config.scheduler.enabled:
        app.state.scheduler = DailyBackupScheduler.from_config(app.state.backup_manager, config.scheduler)
        app.state.scheduler.start()
    else:
        logger.info("Daily backup scheduler disabled")

    yield

    # Cleanup
    logger.info("Shutting down backup manager...")
    if app.state.scheduler is not None:
        await app.state.scheduler.stop()
    await app.state.backup_manager.close()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
        docs_url=f"{settings.api_prefix}/docs",
        openapi_url=f"{settings.api_prefix}/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(backup.router, prefix=settings.api_prefix)
    app.include_router(health.router, prefix=settings.api_prefix)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": settings.api_title,
            "version": settings.api_version,
            "docs": f"{settings.api_prefix}/docs"
        }

    return app


# Create default app instance
app = create_app()

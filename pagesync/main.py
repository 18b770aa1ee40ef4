from pathlib import Path
from contextlib import asynccontextmanager
from datetime import timedelta
import asyncio
from typing import Optional

from alembic import command
from alembic.config import Config
from fastapi import FastAPI

from pagesync.api.errors import sync_error_handler
from pagesync.api.routes import health_router, pages_router, stats_router, sync_router, webhook_router
from pagesync.core.config import settings
from pagesync.core.dates import utcnow
from pagesync.core.db import SessionLocal
from pagesync.core.errors import ConfigError, SyncError
from pagesync.core.logging import get_logger
from pagesync.policy import load_policies
from pagesync.services.sync_service import SyncService


log = get_logger("app")

# Background task handle
_sync_task: Optional[asyncio.Task] = None


def run_migrations() -> None:
    """Execute Alembic migrations programmatically on startup."""
    project_root = Path(__file__).resolve().parent.parent
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL.replace("%", "%%"))
    log.info("Running Alembic migrations to head")
    command.upgrade(alembic_cfg, "head")
    log.info("Alembic migrations applied")


async def run_sync_pipeline(service: SyncService) -> None:
    """Incremental sync of every configured data source."""
    log.info("Starting scheduled sync for all data sources...")
    deadline = None
    if settings.SYNC_DEADLINE_SECONDS:
        deadline = utcnow() + timedelta(seconds=settings.SYNC_DEADLINE_SECONDS)

    try:
        summaries = await service.run(deadline=deadline)
    except ConfigError as exc:
        log.error(f"Scheduled sync not started: {exc}")
        return

    for summary in summaries:
        if summary.status == "error":
            log.error(f"Sync '{summary.alias}': failed - {summary.details}")
        else:
            log.info(f"Sync '{summary.alias}': {summary.status}, processed {summary.processed}")

    log.info("Scheduled sync completed")


async def scheduled_sync_task(service: SyncService) -> None:
    """Background task that syncs at the configured interval."""
    interval = settings.SYNC_INTERVAL_SECONDS
    log.info(f"Scheduled sync task started (interval: {interval}s)")

    # Run immediately on startup
    await run_sync_pipeline(service)

    while True:
        try:
            await asyncio.sleep(interval)
            await run_sync_pipeline(service)
        except asyncio.CancelledError:
            log.info("Scheduled sync task cancelled")
            break
        except Exception as exc:
            log.exception(f"Scheduled sync task error: {exc}")
            # Continue running despite errors


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _sync_task

    # Log environment mode
    log.info(f"Starting application in {settings.ENV.upper()} mode")
    if settings.is_production:
        log.info("Production mode: Debug disabled, docs disabled, stricter logging")
    else:
        log.info("Development mode: Debug enabled, docs available")

    # Startup
    try:
        run_migrations()
    except Exception:
        log.exception("Failed to apply migrations on startup")
        raise

    # Policies are user code; a broken module keeps the read API up
    try:
        registry = load_policies()
        app.state.sync_service = SyncService(registry, SessionLocal)
    except ConfigError as exc:
        log.error(f"Sync disabled: {exc}")
        app.state.sync_service = None

    if settings.SYNC_ENABLED and app.state.sync_service is not None:
        log.info("Starting scheduled sync background task...")
        _sync_task = asyncio.create_task(scheduled_sync_task(app.state.sync_service))
    else:
        log.info("Scheduled sync is disabled")

    yield

    # Shutdown
    log.info("Shutting down services...")

    if _sync_task:
        log.info("Cancelling scheduled sync task...")
        _sync_task.cancel()
        try:
            await _sync_task
        except asyncio.CancelledError:
            pass
        _sync_task = None

    log.info("Application shutdown complete")


# Configure FastAPI based on environment
app = FastAPI(
    title="Pagesync",
    description="Syncs Notion databases into a queryable page store",
    version="1.0.0",
    lifespan=lifespan,
    # Disable docs in production for security
    docs_url="/docs" if settings.docs_enabled else None,
    redoc_url="/redoc" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.docs_enabled else None,
    # Debug mode only in development
    debug=settings.debug_enabled,
)

app.add_exception_handler(SyncError, sync_error_handler)

app.include_router(health_router)
app.include_router(pages_router)
app.include_router(stats_router)
app.include_router(sync_router)
app.include_router(webhook_router)

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.schemas.scan import HealthResponse


def _validate_env() -> None:
    """
    Validate required environment variables at startup.

    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.
    """

    from db.config import load_env_files

    from insights.registry import SALES_RHYTHM_VARIANTS

    load_env_files()

    errors: list[str] = []

    # --- Database URL ---------------------------------------------------
    database_url = os.getenv("DATABASE_URL", "").strip()
    cloud_database_url = os.getenv("CLOUD_DATABASE_URL", "").strip()
    local_database_url = os.getenv("LOCAL_DATABASE_URL", "").strip()
    if not (database_url or cloud_database_url or local_database_url):
        errors.append(
            "No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL "
            "or LOCAL_DATABASE_URL."
        )

    # --- Detector variant -----------------------------------------------
    variant = os.getenv("SCAN_SALES_RHYTHM_VARIANT", "").strip().lower()
    if variant and variant not in SALES_RHYTHM_VARIANTS:
        errors.append(
            f"SCAN_SALES_RHYTHM_VARIANT='{variant}' is not valid. "
            f"Allowed values: {sorted(SALES_RHYTHM_VARIANTS)}."
        )

    if errors:
        raise RuntimeError(
            "Startup validation failed: missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _warn_disabled_features() -> None:
    """Log features that stay off because their credentials are unset."""
    from app.config import get_cron_settings, get_email_settings

    log = logging.getLogger(__name__)
    if not get_cron_settings().secret:
        log.warning("CRON_SECRET is unset; POST /cron/scan will answer 503")
    email = get_email_settings()
    if email.enabled and not email.resend_api_key:
        log.warning("RESEND_API_KEY is unset; daily digests will not be sent")


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import session_scope

    try:
        with session_scope() as db:
            db.execute(text("SELECT 1"))
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Every table registered on Base.metadata must exist in the database.

    Does NOT auto-migrate; run ``alembic upgrade head`` first.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401 (registers all ORM models on Base.metadata)
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    missing = set(Base.metadata.tables.keys()) - set(inspector.get_table_names())

    if missing:
        logging.getLogger(__name__).critical(
            "Schema mismatch: %d table(s) absent from the database: %s. "
            "Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Validate DB connectivity and schema, start the sweep scheduler; shut it down on exit."""
    log = logging.getLogger(__name__)
    _check_db()
    log.info("Database connectivity confirmed")
    _check_schema()
    log.info("Database schema validated")

    from app.config import get_scan_settings
    from app.scheduler.jobs import build_scheduler

    settings = get_scan_settings()
    scheduler = build_scheduler(settings) if settings.scheduler_enabled else None
    if scheduler is not None:
        scheduler.start()
        log.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    else:
        log.info("Scheduler disabled (SCAN_SCHEDULER_ENABLED=false)")
    application.state.scheduler = scheduler
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=True)
            log.info("Scheduler shut down")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()
    _warn_disabled_features()

    application = FastAPI(
        title="MerchPulse Scan API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import cron_router, scan_router

    application.include_router(scan_router)
    application.include_router(cron_router)

    @application.get("/health", response_model=HealthResponse)
    def healthcheck() -> HealthResponse:
        scheduler = getattr(application.state, "scheduler", None)
        return HealthResponse(
            status="ok",
            scheduler_running=bool(scheduler is not None and scheduler.running),
        )

    return application


app = create_app()


def serve() -> None:
    """Console entry point: run the API under uvicorn."""
    import uvicorn

    from app.config import get_server_settings

    settings = get_server_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    serve()

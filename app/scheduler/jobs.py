"""
app/scheduler/jobs.py

APScheduler-based sweep that scans every shop whose next scan is due.

Schedule
--------
  scan_sweep: every ``SCAN_SWEEP_INTERVAL_MINUTES`` (default 15)

Each shop's ``next_scan_at`` is already pinned to 11:00 shop-local, so the
interval only bounds how late after 11:00 a shop is picked up. The job never
overlaps itself (``max_instances=1``); shops inside one sweep run strictly
one at a time.

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down gracefully on app shutdown.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import ScanSettings, get_scan_settings
from app.services.batch_scan_service import run_due_scans
from db.session import session_scope

logger = logging.getLogger(__name__)


def run_scan_sweep() -> None:
    """Scan all due shops. Errors are logged; the next tick retries."""
    try:
        with session_scope() as db:
            batch = run_due_scans(db)
    except Exception:
        logger.exception("Scan sweep aborted")
        return

    failed = [r.shop_domain for r in batch.results if not r.ok]
    if failed:
        logger.warning("Scan sweep finished with failures: %s", ", ".join(failed))
    logger.info("Scan sweep complete: due=%d ran=%d", batch.due, batch.ran)


def build_scheduler(settings: ScanSettings | None = None) -> BackgroundScheduler:
    """
    Build and register the sweep job.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    The caller must call ``.start()`` and ``.shutdown(wait=True)`` at the
    appropriate lifecycle points.
    """
    settings = settings or get_scan_settings()
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        run_scan_sweep,
        trigger="interval",
        minutes=settings.sweep_interval_minutes,
        id="scan_sweep",
        name="Due shop scan sweep",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=settings.sweep_interval_minutes * 60,
    )

    return scheduler

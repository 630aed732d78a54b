"""
tests/test_scheduler.py

Pytest unit tests for app.scheduler.jobs.

Coverage
--------
- Sweep job registration (interval, single instance, coalescing)
- A failing sweep is logged, never raised
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

from app.config import ScanSettings
from app.domain.scan import BatchScanResult, ShopScanResult
from app.scheduler import jobs


def test_build_scheduler_registers_sweep() -> None:
    scheduler = jobs.build_scheduler(ScanSettings(sweep_interval_minutes=5))
    [job] = scheduler.get_jobs()
    assert job.id == "scan_sweep"
    assert job.func is jobs.run_scan_sweep
    assert job.trigger.interval == timedelta(minutes=5)
    assert job.max_instances == 1
    assert job.coalesce is True
    assert scheduler.running is False


def test_sweep_failure_is_logged(monkeypatch, caplog) -> None:
    @contextmanager
    def broken_scope():
        raise RuntimeError("database unavailable")
        yield

    monkeypatch.setattr(jobs, "session_scope", broken_scope)
    jobs.run_scan_sweep()
    assert "Scan sweep aborted" in caplog.text


def test_sweep_runs_due_scans(monkeypatch, caplog) -> None:
    @contextmanager
    def fake_scope():
        yield object()

    batch = BatchScanResult(
        now=datetime(2026, 10, 14, 18, 0, tzinfo=timezone.utc),
        due=1,
        ran=1,
        results=[ShopScanResult(shop_domain="a.myshopify.com", ok=False, error="x")],
    )
    monkeypatch.setattr(jobs, "session_scope", fake_scope)
    monkeypatch.setattr(jobs, "run_due_scans", lambda db: batch)
    caplog.set_level("INFO")

    jobs.run_scan_sweep()

    assert "a.myshopify.com" in caplog.text
    assert "due=1 ran=1" in caplog.text

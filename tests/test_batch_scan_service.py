"""
tests/test_batch_scan_service.py

Pytest unit tests for app.services.batch_scan_service.BatchScanService.

Coverage
--------
- Every due shop gets a result, in order
- One failing shop does not stop the sweep
- Empty sweep
"""

from __future__ import annotations

from datetime import datetime, timezone

from app.domain.scan import ScanMode, ScanSummary, ShopCredentials
from app.services.batch_scan_service import BatchScanService

NOW = datetime(2026, 10, 14, 18, 0, tzinfo=timezone.utc)


def _shop(name: str) -> ShopCredentials:
    return ShopCredentials(shop_id=name, shop_domain=f"{name}.myshopify.com", access_token="t")


def test_failing_shop_does_not_stop_sweep() -> None:
    seen_now = []
    scanned = []

    def list_due(now):
        seen_now.append(now)
        return [_shop("a"), _shop("b"), _shop("c")]

    def run_scan(credentials):
        scanned.append(credentials.shop_id)
        if credentials.shop_id == "b":
            raise RuntimeError("shopify down")
        return ScanSummary(mode=ScanMode.AUTO, inserted=1, keys=["dead_inventory"])

    batch = BatchScanService(list_due_shops=list_due, run_scan=run_scan, clock=lambda: NOW).run()

    assert seen_now == [NOW]
    assert scanned == ["a", "b", "c"]
    assert batch.now == NOW
    assert batch.due == 3
    assert batch.ran == 3
    assert [r.shop_domain for r in batch.results] == [
        "a.myshopify.com",
        "b.myshopify.com",
        "c.myshopify.com",
    ]
    assert [r.ok for r in batch.results] == [True, False, True]
    assert batch.results[0].summary["keys"] == ["dead_inventory"]
    assert batch.results[0].summary["mode"] == "auto"
    assert batch.results[1].error == "RuntimeError: shopify down"
    assert batch.results[1].summary is None


def test_nothing_due() -> None:
    batch = BatchScanService(
        list_due_shops=lambda now: [],
        run_scan=lambda credentials: ScanSummary(),
        clock=lambda: NOW,
    ).run()
    assert (batch.due, batch.ran, batch.results) == (0, 0, [])

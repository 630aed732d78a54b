"""
tests/test_api.py

Pytest tests for the HTTP surface using FastAPI's TestClient.

The routers are mounted on a bare app (``app.main`` validates the database
at startup); ``get_db`` is overridden and the service entry points are
monkeypatched.

Coverage
--------
- Manual scan: success payload and error-to-status mapping
- Cron sweep: bearer secret enforcement and per-shop results
- Scan status and insight listing, including unknown shops
"""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.routers import cron_router, scan_router
from app.config import get_cron_settings
from app.domain.scan import (
    BatchScanResult,
    ScanRunRecord,
    ScanStatus,
    ScanSummary,
    ShopScanResult,
    SkippedCandidate,
)
from app.services.scan_orchestrator import InsightPersistenceError, ScanFetchError
from app.services.shop_scan_service import ShopNotFoundError, ShopNotInstalledError
from db.session import get_db

NOW = datetime(2026, 10, 14, 18, 0, tzinfo=timezone.utc)


@pytest.fixture
def client() -> TestClient:
    application = FastAPI()
    application.include_router(scan_router)
    application.include_router(cron_router)
    application.dependency_overrides[get_db] = lambda: MagicMock()
    return TestClient(application)


@pytest.fixture
def cron_secret(monkeypatch):
    monkeypatch.setenv("CRON_SECRET", "s3cret")
    get_cron_settings.cache_clear()
    yield "s3cret"
    get_cron_settings.cache_clear()


class TestManualScan:
    def test_returns_summary(self, client, monkeypatch) -> None:
        captured = []

        def fake_scan(db, shop_domain):
            captured.append(shop_domain)
            return ScanSummary(
                inserted=1,
                keys=["inventory_pressure"],
                evaluated=["sales_rhythm_drift", "inventory_pressure"],
                skipped=[SkippedCandidate("sales_rhythm_drift", "guard_6h")],
                timezone="Europe/Paris",
            )

        monkeypatch.setattr("app.api.routers.scan_router.run_manual_scan", fake_scan)
        response = client.post("/shops/Demo.myshopify.com/scan")

        assert response.status_code == 200
        body = response.json()
        assert captured == ["Demo.myshopify.com"]
        assert body["shop_domain"] == "demo.myshopify.com"
        assert body["status"] == "ok"
        assert body["mode"] == "manual"
        assert body["keys"] == ["inventory_pressure"]
        assert body["skipped"] == [{"type": "sales_rhythm_drift", "reason": "guard_6h"}]
        assert body["timezone"] == "Europe/Paris"

    @pytest.mark.parametrize(
        "error, status_code",
        [
            (ShopNotFoundError("missing"), 404),
            (ShopNotInstalledError("no token"), 409),
            (ScanFetchError("shopify down"), 502),
            (InsightPersistenceError("insert failed"), 500),
        ],
    )
    def test_error_mapping(self, client, monkeypatch, error, status_code) -> None:
        def fake_scan(db, shop_domain):
            raise error

        monkeypatch.setattr("app.api.routers.scan_router.run_manual_scan", fake_scan)
        response = client.post("/shops/demo.myshopify.com/scan")
        assert response.status_code == status_code
        assert response.json()["detail"] == str(error)


class TestCronSweep:
    def test_closed_without_secret(self, client, monkeypatch) -> None:
        monkeypatch.delenv("CRON_SECRET", raising=False)
        get_cron_settings.cache_clear()
        try:
            response = client.post("/cron/scan", headers={"Authorization": "Bearer anything"})
        finally:
            get_cron_settings.cache_clear()
        assert response.status_code == 503

    @pytest.mark.parametrize(
        "headers",
        [{}, {"Authorization": "Bearer wrong"}, {"Authorization": "Basic s3cret"}],
    )
    def test_rejects_bad_credentials(self, client, cron_secret, headers) -> None:
        assert client.post("/cron/scan", headers=headers).status_code == 401

    def test_runs_sweep(self, client, cron_secret, monkeypatch) -> None:
        batch = BatchScanResult(
            now=NOW,
            due=2,
            ran=2,
            results=[
                ShopScanResult(shop_domain="a.myshopify.com", ok=True, summary={"inserted": 2}),
                ShopScanResult(shop_domain="b.myshopify.com", ok=False, error="ScanFetchError: x"),
            ],
        )
        monkeypatch.setattr("app.api.routers.cron_router.run_due_scans", lambda db: batch)

        response = client.post("/cron/scan", headers={"Authorization": f"Bearer {cron_secret}"})

        assert response.status_code == 200
        body = response.json()
        assert body["due"] == 2
        assert body["ran"] == 2
        assert body["results"] == [
            {"shop": "a.myshopify.com", "ok": True, "summary": {"inserted": 2}, "error": None},
            {"shop": "b.myshopify.com", "ok": False, "summary": None, "error": "ScanFetchError: x"},
        ]


class TestReadEndpoints:
    @pytest.fixture
    def shop(self, monkeypatch):
        shop = SimpleNamespace(id="shop-1", shop_domain="demo.myshopify.com", lookups=[])

        class FakeShopRepository:
            def __init__(self, db) -> None:
                pass

            def get_by_domain(self, domain):
                shop.lookups.append(domain)
                return shop if domain == shop.shop_domain else None

        monkeypatch.setattr("app.api.routers.scan_router.ShopRepository", FakeShopRepository)
        return shop

    def _patch_scan_runs(self, monkeypatch, record) -> None:
        repo = MagicMock()
        repo.get.return_value = record
        monkeypatch.setattr("app.api.routers.scan_router.ScanRunRepository", lambda db: repo)

    def test_unknown_shop_is_404(self, client, shop) -> None:
        response = client.get("/shops/other.myshopify.com/scan-status")
        assert response.status_code == 404
        assert shop.lookups == ["other.myshopify.com"]

    def test_status_before_first_scan(self, client, shop, monkeypatch) -> None:
        self._patch_scan_runs(monkeypatch, None)
        response = client.get("/shops/Demo.myshopify.com/scan-status")

        assert response.status_code == 200
        assert response.json() == {
            "shop_domain": "demo.myshopify.com",
            "last_scan_at": None,
            "next_scan_at": None,
            "last_scan_status": None,
            "last_scan_summary": None,
        }

    def test_status_after_scan(self, client, shop, monkeypatch) -> None:
        record = ScanRunRecord(
            shop_id="shop-1",
            last_scan_at=NOW,
            next_scan_at=datetime(2026, 10, 15, 11, 0, tzinfo=timezone.utc),
            last_scan_status=ScanStatus.ERROR,
            last_scan_summary={"error": "ScanFetchError"},
        )
        self._patch_scan_runs(monkeypatch, record)

        body = client.get("/shops/demo.myshopify.com/scan-status").json()

        assert body["last_scan_status"] == "error"
        assert body["last_scan_summary"] == {"error": "ScanFetchError"}
        assert body["next_scan_at"].startswith("2026-10-15T11:00:00")

    def test_lists_insights(self, client, shop, monkeypatch) -> None:
        row = SimpleNamespace(
            type="inventory_pressure",
            title="2 products are out of stock",
            description="Two sellers ran out.",
            severity="high",
            suggested_action="Reorder now.",
            confidence="high",
            created_at=NOW,
            data_snapshot=None,
        )
        repo = MagicMock()
        repo.list_for_shop.return_value = [row]
        monkeypatch.setattr("app.api.routers.scan_router.InsightRepository", lambda db: repo)

        response = client.get("/shops/demo.myshopify.com/insights")

        assert response.status_code == 200
        body = response.json()
        repo.list_for_shop.assert_called_once_with("shop-1")
        assert body["shop_domain"] == "demo.myshopify.com"
        assert len(body["insights"]) == 1
        assert body["insights"][0]["type"] == "inventory_pressure"
        assert body["insights"][0]["data_snapshot"] == {}

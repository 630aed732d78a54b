"""
app/services/batch_scan_service.py

Sequential sweep over every shop whose next scan is due.

Shops are processed strictly one at a time to stay inside upstream API rate
limits. A failing shop is reported as ``ok=False`` and the sweep continues.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.domain.scan import BatchScanResult, ScanMode, ScanSummary, ShopCredentials, ShopScanResult
from app.logging_utils import elapsed_ms, log_event
from app.repositories.scan_run_repository import ScanRunRepository
from app.services.shop_scan_service import build_scan_orchestrator

logger = logging.getLogger(__name__)

ListDueShops = Callable[[datetime], list[ShopCredentials]]
RunScan = Callable[[ShopCredentials], ScanSummary]


class BatchScanService:
    def __init__(
        self,
        *,
        list_due_shops: ListDueShops,
        run_scan: RunScan,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._list_due_shops = list_due_shops
        self._run_scan = run_scan
        self._clock = clock

    def run(self) -> BatchScanResult:
        started = time.monotonic()
        now = self._clock()
        due = self._list_due_shops(now)
        results: list[ShopScanResult] = []

        for credentials in due:
            try:
                summary = self._run_scan(credentials)
            except Exception as exc:
                logger.warning(
                    "Batch scan failed for shop=%s: %s",
                    credentials.shop_domain,
                    exc,
                )
                results.append(
                    ShopScanResult(
                        shop_domain=credentials.shop_domain,
                        ok=False,
                        error=f"{type(exc).__name__}: {exc}",
                    )
                )
                continue
            results.append(
                ShopScanResult(
                    shop_domain=credentials.shop_domain,
                    ok=True,
                    summary=summary.to_dict(),
                )
            )

        batch = BatchScanResult(now=now, due=len(due), ran=len(results), results=results)
        log_event(
            logger,
            logging.INFO,
            "batch_scan_completed",
            due=batch.due,
            ran=batch.ran,
            failed=sum(1 for r in results if not r.ok),
            duration_ms=elapsed_ms(started),
        )
        return batch


def run_due_scans(session: Session) -> BatchScanResult:
    """Run the sweep for every due shop using one session."""
    orchestrator = build_scan_orchestrator(session)

    def _scan(credentials: ShopCredentials) -> ScanSummary:
        return orchestrator.run(credentials, mode=ScanMode.AUTO)

    return BatchScanService(
        list_due_shops=ScanRunRepository(session).list_due_shops,
        run_scan=_scan,
    ).run()

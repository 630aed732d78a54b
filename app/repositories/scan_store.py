"""
app/repositories/scan_store.py

The persistence surface a scan needs, and its SQLAlchemy implementation.

``ScanStore`` is what :class:`~app.services.scan_orchestrator.ScanOrchestrator`
depends on; tests substitute an in-memory implementation. ``SqlScanStore``
composes the repositories over one session and commits after each write,
rolling back before re-raising on failure, so one failed write never poisons
the next.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Protocol, TypeVar

from sqlalchemy.orm import Session

from app.domain.scan import DigestSettings, ScanRunRecord
from app.repositories.digest_settings_repository import DigestSettingsRepository
from app.repositories.insight_repository import InsightRepository
from app.repositories.price_snapshot_repository import PriceSnapshotRepository
from app.repositories.scan_run_repository import ScanRunRepository
from insights.context import PriceSnapshot, Product
from insights.digest import DigestInsight
from insights.normalizer import CanonicalInsight

T = TypeVar("T")


class ScanStore(Protocol):
    def persist_insights(self, rows: Sequence[CanonicalInsight]) -> int: ...

    def query_recent_insight(self, shop_id: str, insight_type: str, since: datetime) -> bool: ...

    def persist_scan_run(self, record: ScanRunRecord) -> None: ...

    def get_scan_run(self, shop_id: str) -> ScanRunRecord | None: ...

    def get_digest_settings(self, shop_id: str) -> DigestSettings | None: ...

    def list_actionable_insights(self, shop_id: str) -> list[DigestInsight]: ...

    def load_price_snapshots(self, shop_id: str, since: datetime) -> list[PriceSnapshot]: ...

    def record_price_snapshots(
        self, shop_id: str, products: Sequence[Product], captured_at: datetime
    ) -> int: ...


class SqlScanStore:
    def __init__(self, session: Session) -> None:
        self._session = session
        self._insights = InsightRepository(session)
        self._scan_runs = ScanRunRepository(session)
        self._digest_settings = DigestSettingsRepository(session)
        self._price_snapshots = PriceSnapshotRepository(session)

    # ------------------------------------------------------------------
    # Writes (commit per call)
    # ------------------------------------------------------------------

    def persist_insights(self, rows: Sequence[CanonicalInsight]) -> int:
        return self._write(lambda: self._insights.upsert_insights(rows))

    def persist_scan_run(self, record: ScanRunRecord) -> None:
        self._write(lambda: self._scan_runs.upsert(record))

    def record_price_snapshots(
        self, shop_id: str, products: Sequence[Product], captured_at: datetime
    ) -> int:
        return self._write(lambda: self._price_snapshots.record(shop_id, products, captured_at))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def query_recent_insight(self, shop_id: str, insight_type: str, since: datetime) -> bool:
        return self._read(lambda: self._insights.exists_since(shop_id, insight_type, since))

    def get_scan_run(self, shop_id: str) -> ScanRunRecord | None:
        return self._read(lambda: self._scan_runs.get(shop_id))

    def get_digest_settings(self, shop_id: str) -> DigestSettings | None:
        return self._read(lambda: self._digest_settings.get(shop_id))

    def list_actionable_insights(self, shop_id: str) -> list[DigestInsight]:
        return self._read(lambda: self._insights.list_actionable(shop_id))

    def load_price_snapshots(self, shop_id: str, since: datetime) -> list[PriceSnapshot]:
        return self._read(lambda: self._price_snapshots.load_since(shop_id, since))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _write(self, fn: Callable[[], T]) -> T:
        try:
            result = fn()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return result

    def _read(self, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except Exception:
            self._session.rollback()
            raise

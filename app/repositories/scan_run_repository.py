"""
app/repositories/scan_run_repository.py

Persistence layer for the per-shop rolling scan snapshot, plus the due-shop
query that drives the automatic sweep.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from app.domain.scan import ScanRunRecord, ScanStatus, ShopCredentials
from db.base import utc_now
from db.models.scan_run import ScanRun
from db.models.shop import Shop


class ScanRunRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def upsert(self, record: ScanRunRecord) -> None:
        """Insert or overwrite the shop's scan run row."""
        values = {
            "shop_id": uuid.UUID(record.shop_id),
            "last_scan_at": record.last_scan_at,
            "next_scan_at": record.next_scan_at,
            "last_scan_status": record.last_scan_status.value,
            "last_scan_summary": record.last_scan_summary,
            "updated_at": utc_now(),
        }
        stmt = insert(ScanRun).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[ScanRun.shop_id],
            set_={key: value for key, value in values.items() if key != "shop_id"},
        )
        self._session.execute(stmt)

    def get(self, shop_id: str) -> ScanRunRecord | None:
        row = self._session.get(ScanRun, uuid.UUID(shop_id))
        if row is None:
            return None
        return ScanRunRecord(
            shop_id=str(row.shop_id),
            last_scan_at=row.last_scan_at,
            next_scan_at=row.next_scan_at,
            last_scan_status=ScanStatus(row.last_scan_status),
            last_scan_summary=row.last_scan_summary or {},
        )

    def list_due_shops(self, now: datetime) -> list[ShopCredentials]:
        """
        Shops holding an access token whose scan run is missing, unscheduled
        or due at *now*. Oldest-due first, never-scanned shops first of all.
        """
        stmt = (
            select(Shop.id, Shop.shop_domain, Shop.access_token)
            .outerjoin(ScanRun, ScanRun.shop_id == Shop.id)
            .where(
                Shop.access_token.is_not(None),
                Shop.access_token != "",
                or_(ScanRun.shop_id.is_(None), ScanRun.next_scan_at.is_(None), ScanRun.next_scan_at <= now),
            )
            .order_by(ScanRun.next_scan_at.asc().nulls_first(), Shop.shop_domain)
        )
        return [
            ShopCredentials(shop_id=str(shop_id), shop_domain=domain, access_token=token)
            for shop_id, domain, token in self._session.execute(stmt).all()
        ]

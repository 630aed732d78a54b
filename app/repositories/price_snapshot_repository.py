"""
app/repositories/price_snapshot_repository.py

Product price history used by the price volatility detector.

Rows older than ``RETENTION_DAYS`` are pruned on every write, so the table
holds a bounded window per shop.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import delete, insert, select
from sqlalchemy.orm import Session

from db.models.price_snapshot import ProductPriceSnapshot
from insights.context import PriceSnapshot, Product
from insights.price_volatility import PriceVolatilityOptions

RETENTION_DAYS = 4 * PriceVolatilityOptions().lookback_days


class PriceSnapshotRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def record(self, shop_id: str, products: Sequence[Product], captured_at: datetime) -> int:
        """Insert one snapshot per product at *captured_at* and prune expired rows."""
        if not products:
            return 0
        shop_uuid = uuid.UUID(shop_id)
        self.prune(shop_uuid, captured_at - timedelta(days=RETENTION_DAYS))
        payloads = [
            {
                "id": uuid.uuid4(),
                "shop_id": shop_uuid,
                "product_id": product.id,
                "price": Decimal(str(round(product.price, 2))),
                "captured_at": captured_at,
            }
            for product in products
        ]
        self._session.execute(insert(ProductPriceSnapshot), payloads)
        return len(payloads)

    def prune(self, shop_uuid: uuid.UUID, before: datetime) -> None:
        self._session.execute(
            delete(ProductPriceSnapshot).where(
                ProductPriceSnapshot.shop_id == shop_uuid,
                ProductPriceSnapshot.captured_at < before,
            )
        )

    def load_since(self, shop_id: str, since: datetime) -> list[PriceSnapshot]:
        stmt = (
            select(ProductPriceSnapshot)
            .where(
                ProductPriceSnapshot.shop_id == uuid.UUID(shop_id),
                ProductPriceSnapshot.captured_at >= since,
            )
            .order_by(ProductPriceSnapshot.captured_at)
        )
        return [
            PriceSnapshot(product_id=row.product_id, price=float(row.price), captured_at=row.captured_at)
            for row in self._session.scalars(stmt).all()
        ]

"""
insights/context.py

Canonical, immutable snapshot of one shop's orders and catalog.

Built once per scan by :mod:`insights.context_builder` and handed unchanged
to every detector. Orders and products are deduplicated by id; cancelled
orders are flagged through ``cancelled_at`` and never dropped, so each
detector decides whether to count them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta


@dataclass(frozen=True)
class LineItem:
    product_id: str
    quantity: int
    revenue: float


@dataclass(frozen=True)
class Order:
    id: str
    created_at: datetime
    cancelled_at: datetime | None
    total_price: float
    line_items: tuple[LineItem, ...] = ()

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled_at is not None


@dataclass(frozen=True)
class Product:
    id: str
    title: str
    price: float
    inventory_quantity: int
    status: str = ""
    historical_revenue: float = 0.0

    @property
    def is_active(self) -> bool:
        """Products without an upstream status are treated as active."""
        return not self.status or self.status == "ACTIVE"


@dataclass(frozen=True)
class PriceSnapshot:
    product_id: str
    price: float
    captured_at: datetime


@dataclass(frozen=True)
class InsightContext:
    """
    Input shared by all detectors within one scan.

    Attributes
    ----------
    shop_id:
        Identifier of the shop being scanned.
    shop_timezone:
        IANA timezone name; ``"UTC"`` when upstream did not provide one.
    now:
        Timezone-aware instant the scan is evaluated at.
    orders / products:
        Deduplicated upstream records.
    price_snapshots:
        Historical price observations, oldest first. Empty when the price
        history store was unavailable.
    """

    shop_id: str
    shop_timezone: str
    now: datetime
    orders: tuple[Order, ...] = ()
    products: tuple[Product, ...] = ()
    price_snapshots: tuple[PriceSnapshot, ...] = field(default=())

    def product_by_id(self) -> dict[str, Product]:
        return {product.id: product for product in self.products}

    def orders_since(self, days: float, *, include_cancelled: bool = False) -> list[Order]:
        """Orders created within the trailing *days* window ending at ``now``."""
        cutoff = self.now - timedelta(days=days)
        return [
            order
            for order in self.orders
            if order.created_at >= cutoff
            and order.created_at <= self.now
            and (include_cancelled or not order.is_cancelled)
        ]

    @property
    def has_line_items(self) -> bool:
        return any(order.line_items for order in self.orders)

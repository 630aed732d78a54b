"""
Shared factories for building detector contexts in tests.

``NOW`` is Wednesday 2026-10-14 18:00 UTC.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone

import pytest

from insights.context import InsightContext, LineItem, Order, PriceSnapshot, Product

NOW = datetime(2026, 10, 14, 18, 0, tzinfo=timezone.utc)


def make_order(
    order_id: str,
    created_at: datetime,
    *,
    total: float = 20.0,
    cancelled: bool = False,
    items: Iterable[tuple[str, int, float]] = (),
) -> Order:
    return Order(
        id=order_id,
        created_at=created_at,
        cancelled_at=created_at + timedelta(hours=1) if cancelled else None,
        total_price=total,
        line_items=tuple(LineItem(pid, qty, rev) for pid, qty, rev in items),
    )


def make_product(
    product_id: str,
    *,
    title: str | None = None,
    price: float = 10.0,
    inventory: int = 50,
    status: str = "ACTIVE",
    historical_revenue: float = 0.0,
) -> Product:
    return Product(
        id=product_id,
        title=title or f"Product {product_id}",
        price=price,
        inventory_quantity=inventory,
        status=status,
        historical_revenue=historical_revenue,
    )


def make_context(
    *,
    orders: Iterable[Order] = (),
    products: Iterable[Product] = (),
    snapshots: Iterable[PriceSnapshot] = (),
    now: datetime = NOW,
    tz: str = "UTC",
) -> InsightContext:
    return InsightContext(
        shop_id="shop-1",
        shop_timezone=tz,
        now=now,
        orders=tuple(orders),
        products=tuple(products),
        price_snapshots=tuple(sorted(snapshots, key=lambda s: s.captured_at)),
    )


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def order_factory() -> Callable[..., Order]:
    return make_order


@pytest.fixture()
def product_factory() -> Callable[..., Product]:
    return make_product


@pytest.fixture()
def context_factory() -> Callable[..., InsightContext]:
    return make_context

"""
insights/context_builder.py

Convert a raw upstream payload into one canonical :class:`InsightContext`.

This is the only place that knows about upstream field-naming conventions.
Accepted shapes per collection:

- GraphQL connections: ``{"orders": {"edges": [{"node": {...}}]}}``
- GraphQL node lists:  ``{"orders": {"nodes": [...]}}``
- Plain lists:         ``{"orders": [...]}``

Field aliases (camelCase GraphQL, snake_case REST) are resolved here so that
detectors can assume a single shape. Numeric fields are coerced defensively:
missing or non-numeric values become ``0``. A malformed order or product is
skipped and counted; it never fails the whole build.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from insights.context import InsightContext, LineItem, Order, PriceSnapshot, Product

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"
UNTITLED_PRODUCT = "Untitled product"

_RECORD_ERRORS = (TypeError, ValueError, AttributeError, KeyError)


def build_insight_context(
    shop_id: str,
    now: datetime,
    payload: Mapping[str, Any] | None,
    *,
    price_snapshots: Iterable[PriceSnapshot] = (),
) -> InsightContext:
    """
    Build the detector context for one scan.

    Parameters
    ----------
    shop_id:
        Identifier stored on the context.
    now:
        Evaluation instant; naive values are interpreted as UTC.
    payload:
        Raw upstream response holding ``shop``, ``orders`` and ``products``.
    price_snapshots:
        Optional price history, sorted oldest first on the context.

    Returns
    -------
    InsightContext
    """
    data: Mapping[str, Any] = payload if isinstance(payload, Mapping) else {}
    orders, skipped_orders = _build_orders(_nodes(data.get("orders")))
    revenue_by_product = _historical_revenue(orders)
    products, skipped_products = _build_products(
        _nodes(data.get("products")),
        revenue_by_product,
    )

    if skipped_orders or skipped_products:
        logger.warning(
            "Context build skipped malformed records shop_id=%s orders=%d products=%d",
            shop_id,
            skipped_orders,
            skipped_products,
        )

    return InsightContext(
        shop_id=shop_id,
        shop_timezone=resolve_timezone(data),
        now=_as_utc(now),
        orders=tuple(orders),
        products=tuple(products),
        price_snapshots=tuple(sorted(price_snapshots, key=lambda s: s.captured_at)),
    )


def resolve_timezone(payload: Mapping[str, Any]) -> str:
    """
    Return the shop's IANA timezone, falling back to ``"UTC"``.

    Unknown zone names also fall back so a bad upstream value cannot break
    local-time arithmetic later in the scan.
    """
    shop = payload.get("shop") if isinstance(payload.get("shop"), Mapping) else {}
    raw = _first(shop, "ianaTimezone", "iana_timezone", "timezone") or _first(
        payload, "shop_timezone", "timezone"
    )
    name = str(raw).strip() if raw else ""
    if not name:
        return DEFAULT_TIMEZONE
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown shop timezone %r; falling back to %s", name, DEFAULT_TIMEZONE)
        return DEFAULT_TIMEZONE
    return name


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


def _build_orders(nodes: Sequence[Any]) -> tuple[list[Order], int]:
    orders: list[Order] = []
    seen: set[str] = set()
    skipped = 0

    for node in nodes:
        try:
            order = _parse_order(node)
        except _RECORD_ERRORS:
            order = None
        if order is None:
            skipped += 1
            continue
        if order.id in seen:
            continue
        seen.add(order.id)
        orders.append(order)

    return orders, skipped


def _parse_order(node: Any) -> Order | None:
    if not isinstance(node, Mapping):
        return None
    order_id = _as_id(_first(node, "id", "order_id"))
    created_at = parse_datetime(_first(node, "created_at", "createdAt"))
    if not order_id or created_at is None:
        return None

    return Order(
        id=order_id,
        created_at=created_at,
        cancelled_at=parse_datetime(_first(node, "cancelled_at", "cancelledAt")),
        total_price=_money(_first(node, "totalPriceSet", "total_price", "totalPrice")),
        line_items=tuple(_parse_line_items(node)),
    )


def _parse_line_items(order: Mapping[str, Any]) -> list[LineItem]:
    raw = order.get("line_items")
    if raw is None:
        raw = order.get("lineItems")

    items: list[LineItem] = []
    for node in _nodes(raw):
        if not isinstance(node, Mapping):
            continue
        product = node.get("product") if isinstance(node.get("product"), Mapping) else {}
        product_id = _as_id(_first(product, "id") or _first(node, "product_id", "productId"))
        if not product_id:
            continue

        quantity = max(0, to_int(node.get("quantity")))
        revenue_raw = _first(node, "originalTotalSet", "revenue", "total", "original_total")
        if revenue_raw is not None:
            revenue = _money(revenue_raw)
        else:
            revenue = _money(_first(node, "price", "originalUnitPriceSet")) * quantity

        items.append(LineItem(product_id=product_id, quantity=quantity, revenue=revenue))
    return items


def _historical_revenue(orders: Iterable[Order]) -> dict[str, float]:
    revenue: dict[str, float] = {}
    for order in orders:
        for item in order.line_items:
            revenue[item.product_id] = revenue.get(item.product_id, 0.0) + item.revenue
    return revenue


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


def _build_products(
    nodes: Sequence[Any],
    revenue_by_product: Mapping[str, float],
) -> tuple[list[Product], int]:
    products: list[Product] = []
    seen: set[str] = set()
    skipped = 0

    for node in nodes:
        try:
            product = _parse_product(node, revenue_by_product)
        except _RECORD_ERRORS:
            product = None
        if product is None:
            skipped += 1
            continue
        if product.id in seen:
            continue
        seen.add(product.id)
        products.append(product)

    return products, skipped


def _parse_product(node: Any, revenue_by_product: Mapping[str, float]) -> Product | None:
    if not isinstance(node, Mapping):
        return None
    product_id = _as_id(_first(node, "id", "product_id"))
    if not product_id:
        return None

    title = str(node.get("title") or "").strip() or UNTITLED_PRODUCT
    status = str(node.get("status") or node.get("product_status") or "").strip().upper()

    return Product(
        id=product_id,
        title=title,
        price=max(0.0, _product_price(node)),
        inventory_quantity=to_int(
            _first(
                node,
                "totalInventory",
                "inventory_quantity",
                "inventoryQuantity",
                "total_inventory",
                "inventory",
            )
        ),
        status=status,
        historical_revenue=round(revenue_by_product.get(product_id, 0.0), 2),
    )


def _product_price(node: Mapping[str, Any]) -> float:
    price_range = node.get("priceRangeV2") or node.get("priceRange")
    if isinstance(price_range, Mapping):
        return _money(price_range.get("minVariantPrice"))

    direct = _first(node, "price", "price_amount")
    if direct is not None:
        return _money(direct)

    variants = _nodes(node.get("variants"))
    if variants and isinstance(variants[0], Mapping):
        return _money(variants[0].get("price"))
    return 0.0


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


def to_float(value: Any) -> float:
    """Coerce *value* to a finite float; anything else becomes ``0.0``."""
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def to_int(value: Any) -> int:
    """Coerce *value* to an int (truncating); anything else becomes ``0``."""
    return int(to_float(value))


def parse_datetime(value: Any) -> datetime | None:
    """Parse ISO-8601 strings or datetimes into aware UTC datetimes."""
    if isinstance(value, datetime):
        return _as_utc(value)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return _as_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def _money(value: Any) -> float:
    """Read a money amount from ``{"shopMoney": {"amount": ..}}``, ``{"amount": ..}`` or a scalar."""
    if isinstance(value, Mapping):
        if isinstance(value.get("shopMoney"), Mapping):
            value = value["shopMoney"]
        return to_float(value.get("amount"))
    return to_float(value)


def _nodes(container: Any) -> list[Any]:
    if isinstance(container, Mapping):
        edges = container.get("edges")
        if isinstance(edges, list):
            return [edge.get("node") for edge in edges if isinstance(edge, Mapping)]
        nodes = container.get("nodes")
        if isinstance(nodes, list):
            return list(nodes)
        return []
    if isinstance(container, list):
        return list(container)
    return []


def _first(mapping: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = mapping.get(key)
        if value is not None:
            return value
    return None


def _as_id(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    return str(value).strip()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

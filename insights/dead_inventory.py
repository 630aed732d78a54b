"""
insights/dead_inventory.py

Dead inventory detector (``dead_inventory``).

Finds active products holding meaningful stock that are not selling, and
estimates the cash tied up in them. Last-sale timestamps come from the line
items of non-cancelled orders.

Buckets
-------
never_sold       no sale anywhere in the payload
stopped_selling  last sale between 30 and 90 days ago
slow_mover       last sale more than 90 days ago
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from insights.base import BaseDetector, Candidate, merge_options
from insights.context import InsightContext

INSIGHT_TYPE = "dead_inventory"

BUCKET_NEVER_SOLD = "never_sold"
BUCKET_STOPPED_SELLING = "stopped_selling"
BUCKET_SLOW_MOVER = "slow_mover"

_EXCLUDED_TITLE_MARKERS = ("gift card", "giftcard")


@dataclass(frozen=True)
class DeadInventoryOptions:
    window_days: int = 30
    slow_mover_days: int = 90
    min_stock: int = 10
    high_cash_trapped: float = 500.0
    medium_item_count: int = 3


class DeadInventoryDetector(BaseDetector):
    type = INSIGHT_TYPE

    def evaluate(
        self,
        context: InsightContext,
        options: Mapping[str, Any] | None = None,
    ) -> Candidate | None:
        opt = merge_options(DeadInventoryOptions(), options)
        last_sale = _last_sale_by_product(context)
        recent_cutoff = context.now - timedelta(days=opt.window_days)
        slow_cutoff = context.now - timedelta(days=opt.slow_mover_days)

        items: list[dict[str, Any]] = []
        for product in context.products:
            if not product.is_active or product.inventory_quantity < opt.min_stock:
                continue
            if any(marker in product.title.lower() for marker in _EXCLUDED_TITLE_MARKERS):
                continue

            sold_at = last_sale.get(product.id)
            if sold_at is None:
                bucket = BUCKET_NEVER_SOLD
            elif sold_at >= recent_cutoff:
                continue
            elif sold_at >= slow_cutoff:
                bucket = BUCKET_STOPPED_SELLING
            else:
                bucket = BUCKET_SLOW_MOVER

            items.append(
                {
                    "product_id": product.id,
                    "title": product.title,
                    "inventory": product.inventory_quantity,
                    "price": product.price,
                    "cash_trapped_estimate": round(product.inventory_quantity * product.price, 2),
                    "bucket": bucket,
                    "last_sale_at": sold_at.isoformat() if sold_at else None,
                    "days_since_last_sale": (
                        (context.now - sold_at).days if sold_at is not None else None
                    ),
                }
            )

        if not items:
            return None

        items.sort(key=lambda x: x["cash_trapped_estimate"], reverse=True)
        total = sum(x["cash_trapped_estimate"] for x in items)

        if total >= opt.high_cash_trapped:
            severity = "high"
        elif len(items) >= opt.medium_item_count:
            severity = "medium"
        else:
            severity = "low"

        bucket_counts = {
            bucket: sum(1 for x in items if x["bucket"] == bucket)
            for bucket in (BUCKET_NEVER_SOLD, BUCKET_STOPPED_SELLING, BUCKET_SLOW_MOVER)
        }

        return {
            "type": INSIGHT_TYPE,
            "title": (
                "Cash is trapped in non-moving inventory"
                if severity == "high"
                else "Some inventory isn’t moving"
            ),
            "severity": severity,
            "description": (
                f"We found {len(items)} products with stock (≥{opt.min_stock}) that haven’t "
                f"sold recently. Estimated cash tied up: ${round(total)}."
            ),
            "suggested_action": (
                "Hide from key collections, bundle with a bestseller, test a small discount, "
                "and avoid reordering until sell-through improves."
            ),
            "metrics": {
                "dead_sku_count": len(items),
                "window_days": opt.window_days,
                "min_stock_threshold": opt.min_stock,
                "total_cash_trapped_estimate": round(total, 2),
                "buckets": bucket_counts,
            },
            "items": items,
            "evaluated_at": context.now.isoformat(),
        }


def _last_sale_by_product(context: InsightContext) -> dict[str, datetime]:
    last: dict[str, datetime] = {}
    for order in context.orders:
        if order.is_cancelled:
            continue
        for item in order.line_items:
            previous = last.get(item.product_id)
            if previous is None or order.created_at > previous:
                last[item.product_id] = order.created_at
    return last

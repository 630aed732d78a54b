"""
insights/inventory_velocity.py

Inventory velocity risk detector (``inventory_velocity_risk``).

For every in-stock product, pick the shortest sales window (7, 14 or 30
days) with at least two units sold, falling back to 30 days, and project days
to stockout from the resulting daily rate. Products already out of stock are
left to :mod:`insights.inventory_pressure`; products that did not sell in 30
days are dead inventory, not velocity risk.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from insights.base import BaseDetector, Candidate, merge_options
from insights.context import InsightContext

INSIGHT_TYPE = "inventory_velocity_risk"


@dataclass(frozen=True)
class InventoryVelocityOptions:
    windows: tuple[int, ...] = (7, 14, 30)
    min_window_units: int = 2
    high_days: float = 3
    medium_days: float = 7
    low_days: float = 14
    revenue_horizon_days: int = 7
    max_items: int = 8


@dataclass
class _SalesAgg:
    units: int = 0
    last_sale_at: datetime | None = None


def severity_for(days_to_stockout: float, opt: InventoryVelocityOptions) -> str | None:
    if days_to_stockout <= opt.high_days:
        return "high"
    if days_to_stockout <= opt.medium_days:
        return "medium"
    if days_to_stockout <= opt.low_days:
        return "low"
    return None


def confidence_for(units_sold: int, window_days: int) -> str:
    """More sale events per window means a steadier daily rate."""
    if units_sold >= max(10, window_days):
        return "high"
    if units_sold >= max(4, window_days // 2):
        return "medium"
    return "low"


class InventoryVelocityRiskDetector(BaseDetector):
    type = INSIGHT_TYPE

    def evaluate(
        self,
        context: InsightContext,
        options: Mapping[str, Any] | None = None,
    ) -> Candidate | None:
        opt = merge_options(InventoryVelocityOptions(), options)
        sales = {w: self._aggregate(context, w) for w in opt.windows}
        longest = max(opt.windows)

        flagged: list[dict[str, Any]] = []
        considered = 0

        for product in context.products:
            if not product.is_active or product.inventory_quantity <= 0:
                continue

            chosen: tuple[int, _SalesAgg] | None = None
            for window in opt.windows:
                agg = sales[window].get(product.id)
                if agg is None:
                    continue
                if agg.units >= opt.min_window_units or window == longest:
                    chosen = (window, agg)
                    break
            if chosen is None or chosen[1].units <= 0:
                continue

            considered += 1
            window, agg = chosen
            daily_units = agg.units / window
            days_to_stockout = product.inventory_quantity / daily_units
            severity = severity_for(days_to_stockout, opt)
            if severity is None:
                continue

            sellable = min(product.inventory_quantity, daily_units * opt.revenue_horizon_days)
            flagged.append(
                {
                    "product_id": product.id,
                    "title": product.title,
                    "inventory": product.inventory_quantity,
                    "price": product.price,
                    "window_days": window,
                    "units_sold_in_window": agg.units,
                    "daily_units": round(daily_units, 2),
                    "days_to_stockout": round(days_to_stockout, 2),
                    "confidence": confidence_for(agg.units, window),
                    "revenue_at_risk_estimate_7d": round(sellable * product.price, 2),
                    "last_sale_at": agg.last_sale_at.isoformat() if agg.last_sale_at else None,
                }
            )

        if not flagged:
            return None

        flagged.sort(key=lambda x: (x["days_to_stockout"], -x["revenue_at_risk_estimate_7d"]))
        top = flagged[: opt.max_items]

        if any(x["days_to_stockout"] <= opt.high_days for x in top):
            severity = "high"
            title = "Stockouts likely within days for fast sellers"
        elif any(x["days_to_stockout"] <= opt.medium_days for x in top):
            severity = "medium"
            title = "Some fast sellers may stock out soon"
        else:
            severity = "low"
            title = "A few products are trending toward stockout"

        window_counts = Counter(x["window_days"] for x in top)

        return {
            "type": INSIGHT_TYPE,
            "title": title,
            "severity": severity,
            "description": (
                f"Based on recent sales velocity, {len(top)} product(s) may stock out soon. "
                f"Soonest: {top[0]['title']} (~{top[0]['days_to_stockout']:g} days)."
            ),
            "suggested_action": (
                "Prioritize replenishment for the top items, pause ads or featured placement "
                "if inventory is too low, and add back-in-stock capture if restock timing "
                "is uncertain."
            ),
            "metrics": {
                "evaluated_window_days": window_counts.most_common(1)[0][0],
                "candidates_considered": considered,
                "items_flagged": len(flagged),
                "revenue_at_risk_estimate_7d": round(
                    sum(x["revenue_at_risk_estimate_7d"] for x in top), 2
                ),
            },
            "items": top,
            "evaluated_at": context.now.isoformat(),
        }

    @staticmethod
    def _aggregate(context: InsightContext, window_days: int) -> dict[str, _SalesAgg]:
        result: dict[str, _SalesAgg] = {}
        for order in context.orders_since(window_days):
            for item in order.line_items:
                if item.quantity <= 0:
                    continue
                agg = result.setdefault(item.product_id, _SalesAgg())
                agg.units += item.quantity
                if agg.last_sale_at is None or order.created_at > agg.last_sale_at:
                    agg.last_sale_at = order.created_at
        return result

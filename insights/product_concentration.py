"""
insights/product_concentration.py

Product concentration risk detector (``product_concentration``).

Measures how much of the trailing window's revenue and units come from the
single top product and from the top three, over non-cancelled orders.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from insights.base import BaseDetector, Candidate, merge_options
from insights.context import InsightContext

INSIGHT_TYPE = "product_concentration"


@dataclass(frozen=True)
class ProductConcentrationOptions:
    window_days: int = 14
    min_units: int = 3
    min_revenue: float = 50.0
    high_top1_pct: float = 60.0
    medium_top3_pct: float = 80.0
    low_top3_pct: float = 70.0
    max_items: int = 10


def share_pct(part: float, total: float) -> float:
    """Share of *total* as a percentage rounded to one decimal."""
    if total <= 0:
        return 0.0
    return round(part / total * 1000) / 10


class ProductConcentrationDetector(BaseDetector):
    type = INSIGHT_TYPE

    def evaluate(
        self,
        context: InsightContext,
        options: Mapping[str, Any] | None = None,
    ) -> Candidate | None:
        opt = merge_options(ProductConcentrationOptions(), options)

        revenue: dict[str, float] = {}
        units: dict[str, int] = {}
        for order in context.orders_since(opt.window_days):
            for item in order.line_items:
                if item.quantity <= 0:
                    continue
                units[item.product_id] = units.get(item.product_id, 0) + item.quantity
                revenue[item.product_id] = revenue.get(item.product_id, 0.0) + item.revenue

        total_units = sum(units.values())
        total_revenue = sum(revenue.values())
        if total_units < opt.min_units and total_revenue < opt.min_revenue:
            return None

        titles = {p.id: p.title for p in context.products}
        rows = sorted(
            (
                {
                    "product_id": pid,
                    "title": titles.get(pid, "Unknown product"),
                    "units": units[pid],
                    "revenue": revenue[pid],
                }
                for pid in units
            ),
            key=lambda r: r["revenue"],
            reverse=True,
        )

        revenue_top1 = share_pct(sum(r["revenue"] for r in rows[:1]), total_revenue)
        revenue_top3 = share_pct(sum(r["revenue"] for r in rows[:3]), total_revenue)
        units_top1 = share_pct(sum(r["units"] for r in rows[:1]), total_units)
        units_top3 = share_pct(sum(r["units"] for r in rows[:3]), total_units)

        if revenue_top1 >= opt.high_top1_pct or units_top1 >= opt.high_top1_pct:
            severity = "high"
        elif revenue_top3 >= opt.medium_top3_pct or units_top3 >= opt.medium_top3_pct:
            severity = "medium"
        elif revenue_top3 >= opt.low_top3_pct or units_top3 >= opt.low_top3_pct:
            severity = "low"
        else:
            return None

        items = [
            {
                **row,
                "revenue": round(row["revenue"], 2),
                "revenue_pct": share_pct(row["revenue"], total_revenue),
                "units_pct": share_pct(row["units"], total_units),
            }
            for row in rows[: opt.max_items]
        ]

        return {
            "type": INSIGHT_TYPE,
            "title": (
                "Revenue is overly dependent on one product"
                if severity == "high"
                else "Revenue is concentrated in a few products"
            ),
            "severity": severity,
            "description": (
                f"In the last {opt.window_days} days, the top product accounts for "
                f"{revenue_top1:g}% of revenue and {units_top1:g}% of units. Top 3 account for "
                f"{revenue_top3:g}% of revenue and {units_top3:g}% of units."
            ),
            "suggested_action": (
                "Reduce dependency risk: promote 1–2 secondary products (bundles, homepage "
                "placement), and ensure inventory/fulfillment for the top product is protected."
                if severity == "high"
                else "Consider diversifying: test promotion for secondary products and check if "
                "the catalog/collections are overly pushing only a few items."
            ),
            "metrics": {
                "window_days": opt.window_days,
                "total_revenue": round(total_revenue, 2),
                "total_units": total_units,
                "revenue_top1_pct": revenue_top1,
                "revenue_top3_pct": revenue_top3,
                "units_top1_pct": units_top1,
                "units_top3_pct": units_top3,
                "products_considered": len(rows),
            },
            "items": items,
            "evaluated_at": context.now.isoformat(),
        }

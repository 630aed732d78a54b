"""
insights/inventory_pressure.py

Inventory pressure detector (``inventory_pressure``).

Two modes, chosen by data richness:

velocity
    Line items link orders to products. Units sold over the trailing window
    give a daily rate, and ``days_of_supply = inventory / daily_rate`` ranks
    the ten best sellers. Supply under 3 days is ``high``, under 7 ``medium``.

low_inventory_only
    No velocity signal. The lowest-inventory products are flagged directly
    (``high`` at 5 units or fewer, ``medium`` at 15 or fewer), and at least two
    flagged items are required to avoid single-SKU noise.

In both modes an active product that is out of stock (inventory ``<= 0``) and
has sales history is always flagged ``high``.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from insights.base import BaseDetector, Candidate, indicator, merge_options
from insights.context import InsightContext, Product

INSIGHT_TYPE = "inventory_pressure"

MODE_VELOCITY = "velocity"
MODE_LOW_INVENTORY = "low_inventory_only"


@dataclass(frozen=True)
class InventoryPressureOptions:
    window_days: int = 14
    top_products: int = 10
    high_days_supply: float = 3
    medium_days_supply: float = 7
    high_inventory: int = 5
    medium_inventory: int = 15
    min_flagged_items: int = 2
    max_flagged: int = 10


class InventoryPressureDetector(BaseDetector):
    type = INSIGHT_TYPE

    def evaluate(
        self,
        context: InsightContext,
        options: Mapping[str, Any] | None = None,
    ) -> Candidate | None:
        opt = merge_options(InventoryPressureOptions(), options)
        active = [p for p in context.products if p.is_active]
        if not active:
            return None

        units = _units_sold(context, opt.window_days)
        mode = MODE_VELOCITY if context.has_line_items and units else MODE_LOW_INVENTORY
        stockouts = _stockouts_with_history(context, active)

        if mode == MODE_VELOCITY:
            flagged = self._velocity_flags(context, units, stockouts, opt)
            considered = min(opt.top_products, len(units))
        else:
            flagged = self._low_inventory_flags(active, stockouts, opt)
            considered = len(active)

        if not flagged:
            return None

        severity = "high" if any(item["level"] == "high" for item in flagged) else "medium"
        top3 = flagged[:3]

        if mode == MODE_VELOCITY:
            description = (
                f"Based on the last {opt.window_days} days, some best sellers are projected "
                f"to stock out in under "
                f"{opt.high_days_supply if severity == 'high' else opt.medium_days_supply:g} days."
            )
            indicators = [
                indicator(
                    "days_of_supply",
                    "Days of supply (velocity-based)",
                    "likely" if severity == "high" else "possible",
                    "high",
                    "Worst offenders: "
                    + ", ".join(f"{i['title']} (~{i['days_of_supply']:g} days)" for i in top3)
                    + ".",
                )
            ]
        else:
            description = (
                "Multiple products are at low inventory levels (≤"
                f"{opt.high_inventory if severity == 'high' else opt.medium_inventory})."
            )
            indicators = [
                indicator(
                    "low_inventory",
                    "Low inventory on multiple products",
                    "likely" if severity == "high" else "possible",
                    "medium",
                    "Lowest inventory: "
                    + ", ".join(f"{i['title']} ({i['inventory']})" for i in top3)
                    + ".",
                )
            ]

        stockout_count = sum(1 for item in flagged if item["inventory"] <= 0)
        items = [{k: v for k, v in item.items() if k != "level"} for item in flagged]

        return {
            "type": INSIGHT_TYPE,
            "title": (
                "Stockouts likely soon on top products"
                if severity == "high"
                else "Inventory is getting tight on key products"
            ),
            "severity": severity,
            "description": description,
            "suggested_action": (
                "Restock or set expectations (preorder/backorder). Pause ads for out-of-stock items."
                if stockout_count
                else "Restock soon or adjust merchandising to avoid stockouts."
            ),
            "indicators": indicators,
            "metrics": {
                "timezone": context.shop_timezone,
                "window_days": opt.window_days,
                "mode": mode,
                "top_products_considered": considered,
                "flagged_count": len(items),
                "zero_inventory_count": stockout_count,
                "min_inventory": min(item["inventory"] for item in items),
            },
            "items": items,
            "evaluated_at": context.now.isoformat(),
        }

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    @staticmethod
    def _velocity_flags(
        context: InsightContext,
        units: dict[str, int],
        stockouts: list[Product],
        opt: InventoryPressureOptions,
    ) -> list[dict[str, Any]]:
        by_id = context.product_by_id()
        ranked = sorted(units.items(), key=lambda kv: kv[1], reverse=True)[: opt.top_products]
        flagged: dict[str, dict[str, Any]] = {}

        for product_id, sold in ranked:
            product = by_id.get(product_id)
            if product is None or not product.is_active:
                continue
            daily_rate = sold / opt.window_days
            inventory = product.inventory_quantity
            days_supply = inventory / daily_rate if daily_rate > 0 else math.inf
            days_supply = max(0.0, days_supply)

            if days_supply < opt.high_days_supply:
                level = "high"
            elif days_supply < opt.medium_days_supply:
                level = "medium"
            else:
                continue
            flagged[product_id] = _flag(
                product,
                level,
                units_sold_window=sold,
                daily_rate=round(daily_rate, 2),
                days_of_supply=round(days_supply, 2),
            )

        for product in stockouts:
            if product.id not in flagged:
                flagged[product.id] = _flag(
                    product,
                    "high",
                    units_sold_window=units.get(product.id, 0),
                    daily_rate=round(units.get(product.id, 0) / opt.window_days, 2),
                    days_of_supply=0.0,
                )

        ordered = sorted(flagged.values(), key=lambda item: item["days_of_supply"])
        return ordered[: opt.max_flagged]

    @staticmethod
    def _low_inventory_flags(
        active: list[Product],
        stockouts: list[Product],
        opt: InventoryPressureOptions,
    ) -> list[dict[str, Any]]:
        low = sorted(
            (p for p in active if p.inventory_quantity <= opt.medium_inventory),
            key=lambda p: p.inventory_quantity,
        )
        if len(low) < opt.min_flagged_items and not stockouts:
            return []
        return [
            _flag(p, "high" if p.inventory_quantity <= opt.high_inventory else "medium")
            for p in low[: opt.max_flagged]
        ]


def _units_sold(context: InsightContext, window_days: int) -> dict[str, int]:
    units: dict[str, int] = {}
    for order in context.orders_since(window_days):
        for item in order.line_items:
            units[item.product_id] = units.get(item.product_id, 0) + item.quantity
    return {pid: qty for pid, qty in units.items() if qty > 0}


def _stockouts_with_history(context: InsightContext, active: list[Product]) -> list[Product]:
    sold_ids = {
        item.product_id
        for order in context.orders
        if not order.is_cancelled
        for item in order.line_items
        if item.quantity > 0
    }
    return [
        p
        for p in active
        if p.inventory_quantity <= 0 and (p.historical_revenue > 0 or p.id in sold_ids)
    ]


def _flag(product: Product, level: str, **extra: Any) -> dict[str, Any]:
    return {
        "product_id": product.id,
        "title": product.title,
        "inventory": product.inventory_quantity,
        "level": level,
        **extra,
    }

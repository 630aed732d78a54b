"""
insights/price_volatility.py

Price volatility risk detector (``price_volatility_risk``).

Reads the price snapshot history carried on the context and flags products
whose price churned inside the lookback window: at least three distinct
prices, or a min/max swing of at least 10%.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from insights.base import BaseDetector, Candidate, merge_options
from insights.context import InsightContext, PriceSnapshot

INSIGHT_TYPE = "price_volatility_risk"


@dataclass(frozen=True)
class PriceVolatilityOptions:
    lookback_days: int = 7
    min_snapshots: int = 2
    min_distinct_prices: int = 3
    min_swing_pct: float = 10.0
    high_swing_pct: float = 20.0
    high_distinct_prices: int = 5
    medium_swing_pct: float = 12.0
    medium_distinct_prices: int = 4
    max_items: int = 8


def _pct_change(start: float, end: float) -> float:
    if start <= 0 or end <= 0:
        return 0.0
    return round((end - start) / start * 100, 1)


class PriceVolatilityRiskDetector(BaseDetector):
    type = INSIGHT_TYPE

    def evaluate(
        self,
        context: InsightContext,
        options: Mapping[str, Any] | None = None,
    ) -> Candidate | None:
        opt = merge_options(PriceVolatilityOptions(), options)
        if not context.products or not context.price_snapshots:
            return None

        cutoff = context.now - timedelta(days=opt.lookback_days)
        history: dict[str, list[PriceSnapshot]] = {}
        for snap in context.price_snapshots:
            if cutoff <= snap.captured_at <= context.now:
                history.setdefault(snap.product_id, []).append(snap)

        rows: list[dict[str, Any]] = []
        for product in context.products:
            snaps = sorted(history.get(product.id, []), key=lambda s: s.captured_at)
            if len(snaps) < opt.min_snapshots:
                continue

            prices = [s.price for s in snaps]
            distinct = {round(p, 2) for p in prices}
            low, high = min(prices), max(prices)
            swing = round((high - low) / low * 100, 1) if low > 0 else 0.0

            if len(distinct) < opt.min_distinct_prices and swing < opt.min_swing_pct:
                continue

            rows.append(
                {
                    "product_id": product.id,
                    "title": product.title,
                    "distinct_prices": len(distinct),
                    "min": low,
                    "max": high,
                    "swing_pct": swing,
                    "earliest": snaps[0].price,
                    "latest": product.price,
                    "net_change_pct": _pct_change(snaps[0].price, product.price),
                }
            )

        if not rows:
            return None

        rows.sort(key=lambda r: (-r["swing_pct"], -r["distinct_prices"]))
        top = rows[: opt.max_items]
        max_swing = max(r["swing_pct"] for r in top)
        max_distinct = max(r["distinct_prices"] for r in top)

        if max_swing >= opt.high_swing_pct or max_distinct >= opt.high_distinct_prices:
            severity = "high"
        elif max_swing >= opt.medium_swing_pct or max_distinct >= opt.medium_distinct_prices:
            severity = "medium"
        else:
            severity = "low"

        return {
            "type": INSIGHT_TYPE,
            "title": (
                "Prices are changing frequently on key products"
                if severity == "high"
                else "Price changes may be creating conversion noise"
            ),
            "severity": severity,
            "description": (
                f"In the last {opt.lookback_days} days, {len(top)} products had frequent price "
                f"changes (up to {max_distinct} distinct prices; up to {max_swing:g}% swing)."
            ),
            "suggested_action": (
                "Stabilize pricing on best-performing SKUs for 7–14 days, and batch changes "
                "weekly. If you’re testing, isolate tests to a small set of products so "
                "conversion signals stay interpretable."
            ),
            "metrics": {
                "lookback_days": opt.lookback_days,
                "products_scanned": len(context.products),
                "volatile_count": len(top),
                "max_distinct_prices": max_distinct,
                "max_swing_pct": max_swing,
            },
            "items": top,
            "evaluated_at": context.now.isoformat(),
        }

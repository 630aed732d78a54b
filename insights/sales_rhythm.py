"""
insights/sales_rhythm.py

Sales-rhythm drift detectors.

Two independently testable variants emit the same insight type
(``sales_rhythm_drift``); :mod:`insights.registry` decides which one is active.

Weekday variant
---------------
Compares today's order count *up to the current local minute-of-day* with the
same-weekday days of a trailing lookback window, each counted up to the same
minute. A drop is flagged when today is below the Tukey lower fence
(``median - 1.5 * IQR``) **and** at most 60% of the baseline median.

Window variant
--------------
Compares the trailing 7 days with the prior 7 days on order count, gross
revenue and cancellation rate.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any
from insights.base import BaseDetector, Candidate, indicator, merge_options
from insights.context import InsightContext, Order, Product
from insights.scheduling import shop_zone
from insights.stats import iqr, median, percentile

INSIGHT_TYPE = "sales_rhythm_drift"

MINUTES_PER_DAY = 1440
MIN_DAY_TOTAL_ORDERS = 3
HIGH_SEVERITY_RATIO = 0.4

TOP_SELLER_LIMIT = 5
LOW_STOCK_TOP_SELLER_LIMIT = 3
LOW_STOCK_UNITS = 3

SUGGESTED_ACTION = (
    "Run a 2-minute storefront smoke test (product → cart → checkout) "
    "and confirm your top sellers are in stock."
)


@dataclass(frozen=True)
class WeekdayDriftOptions:
    lookback_days: int = 56
    min_baseline_days: int = 4
    min_median_orders: float = 6
    min_day_progress_pct: float = 0.25
    drop_ratio_threshold: float = 0.6
    iqr_multiplier: float = 1.5


@dataclass(frozen=True)
class WindowDriftOptions:
    window_days: int = 7
    min_prior_orders: int = 5
    high_drop_pct: float = 0.30
    medium_drop_pct: float = 0.15
    low_drop_pct: float = 0.10
    high_cancel_multiplier: float = 2.0
    medium_cancel_multiplier: float = 1.5
    min_cancel_rate: float = 0.05


@dataclass(frozen=True)
class SalesRhythmDriftResult:
    """
    Full outcome of the weekday evaluation, including non-detections.

    ``severity`` is ``None`` unless ``detected`` is ``True``.
    """

    detected: bool
    orders_today_so_far: int
    baseline_values: tuple[int, ...]
    baseline_median: float
    baseline_p25: float
    baseline_p75: float
    expected_low: float
    compared_window_label: str
    evaluated_at_store: str
    timezone: str
    severity: str | None = None
    reason: str = ""


@dataclass(frozen=True)
class _DayTally:
    count: int = 0
    total: int = 0


# ---------------------------------------------------------------------------
# Weekday variant
# ---------------------------------------------------------------------------


def detect_weekday_drift(
    context: InsightContext,
    options: WeekdayDriftOptions | None = None,
) -> SalesRhythmDriftResult:
    """
    Evaluate today's order pace against same-weekday baselines.

    Cancelled orders are excluded. Baseline days are the ``lookback_days``
    local calendar dates strictly before today that fall on today's weekday
    and had at least three orders in total.
    """
    opt = options or WeekdayDriftOptions()
    zone = shop_zone(context.shop_timezone)
    tz_name = zone.key
    now_local = context.now.astimezone(zone)
    now_minute = _minute_of_day(now_local)
    today = now_local.date()

    base = dict(
        evaluated_at_store=now_local.isoformat(),
        timezone=tz_name,
    )

    if now_minute / MINUTES_PER_DAY < opt.min_day_progress_pct:
        return SalesRhythmDriftResult(
            detected=False,
            orders_today_so_far=0,
            baseline_values=(),
            baseline_median=0.0,
            baseline_p25=0.0,
            baseline_p75=0.0,
            expected_low=0.0,
            compared_window_label=f"Last {opt.lookback_days} days (same weekday)",
            reason="day_progress",
            **base,
        )

    window_start = today - timedelta(days=opt.lookback_days)
    orders_today = 0
    tallies: dict[date, _DayTally] = {}

    for order in context.orders:
        if order.is_cancelled:
            continue
        local = order.created_at.astimezone(zone)
        local_date = local.date()
        within_pace = _minute_of_day(local) <= now_minute

        if local_date == today:
            if within_pace and local <= now_local:
                orders_today += 1
            continue
        if not (window_start <= local_date < today):
            continue
        if local_date.weekday() != today.weekday():
            continue

        tally = tallies.get(local_date, _DayTally())
        tallies[local_date] = _DayTally(
            count=tally.count + (1 if within_pace else 0),
            total=tally.total + 1,
        )

    baseline = tuple(
        tallies[day].count
        for day in sorted(tallies)
        if tallies[day].total >= MIN_DAY_TOTAL_ORDERS
    )

    m = median(baseline)
    p25 = percentile(baseline, 0.25)
    p75 = percentile(baseline, 0.75)
    weekday_label = f"Last {len(baseline)} {now_local.strftime('%A')}s"

    if len(baseline) < opt.min_baseline_days:
        return SalesRhythmDriftResult(
            detected=False,
            orders_today_so_far=orders_today,
            baseline_values=baseline,
            baseline_median=m,
            baseline_p25=p25,
            baseline_p75=p75,
            expected_low=0.0,
            compared_window_label=f"Last {len(baseline)} comparable days",
            reason="insufficient_baseline",
            **base,
        )

    expected_low = m - opt.iqr_multiplier * iqr(baseline)

    if m < opt.min_median_orders:
        return SalesRhythmDriftResult(
            detected=False,
            orders_today_so_far=orders_today,
            baseline_values=baseline,
            baseline_median=m,
            baseline_p25=p25,
            baseline_p75=p75,
            expected_low=expected_low,
            compared_window_label=weekday_label,
            reason="low_volume",
            **base,
        )

    ratio = orders_today / (m or 1)
    detected = orders_today < expected_low and ratio <= opt.drop_ratio_threshold

    return SalesRhythmDriftResult(
        detected=detected,
        orders_today_so_far=orders_today,
        baseline_values=baseline,
        baseline_median=m,
        baseline_p25=p25,
        baseline_p75=p75,
        expected_low=expected_low,
        compared_window_label=weekday_label,
        severity=("high" if ratio <= HIGH_SEVERITY_RATIO else "medium") if detected else None,
        reason="" if detected else "within_range",
        **base,
    )


class WeekdaySalesRhythmDetector(BaseDetector):
    """Same-weekday baseline drift detector (default variant)."""

    type = INSIGHT_TYPE
    variant = "weekday"

    def evaluate(
        self,
        context: InsightContext,
        options: Mapping[str, Any] | None = None,
    ) -> Candidate | None:
        opt = merge_options(WeekdayDriftOptions(), options)
        result = detect_weekday_drift(context, opt)
        if not result.detected:
            return None

        sellers = _TopSellerContext.from_products(context.products)
        typical = round(result.baseline_median)

        indicators = [
            indicator(
                "order_count_drop",
                "Order pace is below normal",
                "likely",
                "high" if result.severity == "high" else "medium",
                f"Orders so far today: {result.orders_today_so_far}. "
                f"Typical by this time: ~{typical}. "
                f"Expected at least: {max(0, round(result.expected_low))}.",
            ),
            _why_unknown_indicator(),
        ]
        indicators.extend(sellers.indicators())

        description = (
            "Orders today are behind your usual pace for this time of day "
            f"({result.orders_today_so_far} vs ~{typical})."
        )
        if sellers.low_stock:
            description += f" Some top sellers are low on stock ({sellers.low_stock_label()})."

        return {
            "type": INSIGHT_TYPE,
            "detected": True,
            "title": (
                "Sales are far below your normal rhythm today"
                if result.severity == "high"
                else "Sales are below your normal rhythm today"
            ),
            "severity": result.severity,
            "description": description,
            "suggested_action": SUGGESTED_ACTION,
            "indicators": indicators,
            "metrics": {
                "variant": self.variant,
                "timezone": result.timezone,
                "compared_window": result.compared_window_label,
                "now_local_iso": result.evaluated_at_store,
                "orders_today_so_far": result.orders_today_so_far,
                "baseline_values": list(result.baseline_values),
                "baseline_median": round(result.baseline_median, 2),
                "baseline_p25": round(result.baseline_p25, 2),
                "baseline_p75": round(result.baseline_p75, 2),
                "expected_low": round(result.expected_low, 2),
                "baseline_days_count": len(result.baseline_values),
                "drop_ratio": round(result.orders_today_so_far / (result.baseline_median or 1), 3),
            },
            "evidence": sellers.evidence(),
            "items": sellers.low_stock_items(),
            "evaluated_at": context.now.isoformat(),
        }


# ---------------------------------------------------------------------------
# Window variant
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _WindowStats:
    orders: int
    gross: float
    cancelled: int
    placed: int

    @property
    def cancel_rate(self) -> float:
        return self.cancelled / self.placed if self.placed else 0.0


def _window_stats(orders: Sequence[Order], start: datetime, end: datetime) -> _WindowStats:
    placed = [o for o in orders if start <= o.created_at < end]
    live = [o for o in placed if not o.is_cancelled]
    return _WindowStats(
        orders=len(live),
        gross=sum(o.total_price for o in live),
        cancelled=len(placed) - len(live),
        placed=len(placed),
    )


def _pct_drop(prior: float, current: float) -> float:
    if prior <= 0:
        return 0.0
    return (prior - current) / prior


class WindowSalesRhythmDetector(BaseDetector):
    """Trailing 7 days vs prior 7 days drift detector."""

    type = INSIGHT_TYPE
    variant = "window"

    def evaluate(
        self,
        context: InsightContext,
        options: Mapping[str, Any] | None = None,
    ) -> Candidate | None:
        opt = merge_options(WindowDriftOptions(), options)
        span = timedelta(days=opt.window_days)
        # Current window includes orders stamped exactly at ``now``.
        end = context.now + timedelta(microseconds=1)
        current = _window_stats(context.orders, end - span, end)
        prior = _window_stats(context.orders, end - 2 * span, end - span)

        if prior.orders < opt.min_prior_orders:
            return None

        orders_drop = _pct_drop(prior.orders, current.orders)
        gross_drop = _pct_drop(prior.gross, current.gross)
        spike_high = _cancel_spike(
            prior, current, opt.high_cancel_multiplier, opt.min_cancel_rate, require_floor=True
        )
        spike_medium = _cancel_spike(
            prior, current, opt.medium_cancel_multiplier, opt.min_cancel_rate, require_floor=False
        )

        if orders_drop >= opt.high_drop_pct and (gross_drop >= opt.high_drop_pct or spike_high):
            severity = "high"
        elif orders_drop >= opt.medium_drop_pct or spike_medium:
            severity = "medium"
        elif orders_drop >= opt.low_drop_pct or gross_drop >= opt.low_drop_pct:
            severity = "low"
        else:
            return None

        sellers = _TopSellerContext.from_products(context.products)
        indicators = [
            indicator(
                "order_count_drop",
                "Order volume is below the prior week",
                "likely" if orders_drop >= opt.medium_drop_pct else "possible",
                "high" if severity == "high" else "medium",
                f"Orders in the last {opt.window_days} days: {current.orders} "
                f"vs {prior.orders} the {opt.window_days} days before "
                f"({orders_drop * 100:.1f}% down).",
            ),
            indicator(
                "cancellation_rate",
                "Cancellations are elevated",
                "likely" if spike_medium else "unlikely",
                "medium",
                f"Cancellation rate {current.cancel_rate * 100:.1f}% "
                f"vs {prior.cancel_rate * 100:.1f}% before.",
            ),
            _why_unknown_indicator(),
        ]
        indicators.extend(sellers.indicators())

        return {
            "type": INSIGHT_TYPE,
            "detected": True,
            "title": (
                "Sales dropped sharply compared with last week"
                if severity == "high"
                else "Sales are softer than last week"
            ),
            "severity": severity,
            "description": (
                f"{current.orders} orders in the last {opt.window_days} days compared with "
                f"{prior.orders} in the {opt.window_days} days before; gross revenue "
                f"{current.gross:.2f} vs {prior.gross:.2f}."
            ),
            "suggested_action": SUGGESTED_ACTION,
            "indicators": indicators,
            "metrics": {
                "variant": self.variant,
                "window_days": opt.window_days,
                "orders_current": current.orders,
                "orders_prior": prior.orders,
                "gross_current": round(current.gross, 2),
                "gross_prior": round(prior.gross, 2),
                "orders_drop_pct": round(orders_drop * 100, 1),
                "gross_drop_pct": round(gross_drop * 100, 1),
                "cancel_rate_current": round(current.cancel_rate, 4),
                "cancel_rate_prior": round(prior.cancel_rate, 4),
            },
            "evidence": sellers.evidence(),
            "items": sellers.low_stock_items(),
            "evaluated_at": context.now.isoformat(),
        }


def _cancel_spike(
    prior: _WindowStats,
    current: _WindowStats,
    multiplier: float,
    min_rate: float,
    *,
    require_floor: bool,
) -> bool:
    """With no prior cancellations any rate at or above *min_rate* is a spike."""
    if prior.cancel_rate <= 0:
        return current.cancel_rate >= min_rate
    if require_floor and current.cancel_rate < min_rate:
        return False
    return current.cancel_rate >= multiplier * prior.cancel_rate


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _TopSellerContext:
    top: tuple[Product, ...] = ()
    low_stock: tuple[Product, ...] = field(default=())

    @classmethod
    def from_products(cls, products: Sequence[Product]) -> _TopSellerContext:
        ranked = sorted(
            (p for p in products if p.historical_revenue > 0),
            key=lambda p: p.historical_revenue,
            reverse=True,
        )
        top = tuple(ranked[:TOP_SELLER_LIMIT])
        low = tuple(p for p in top if p.inventory_quantity <= LOW_STOCK_UNITS)
        return cls(top=top, low_stock=low[:LOW_STOCK_TOP_SELLER_LIMIT])

    def low_stock_label(self) -> str:
        return ", ".join(f"{p.title} ({p.inventory_quantity})" for p in self.low_stock)

    def indicators(self) -> list[dict[str, str]]:
        if not self.low_stock:
            return []
        return [
            indicator(
                "top_seller_stock_risk",
                "A top seller may be constraining sales",
                "possible",
                "medium",
                f"Low stock on top sellers: {self.low_stock_label()}.",
            )
        ]

    def evidence(self) -> dict[str, Any]:
        return {
            "top_sellers": [_seller_row(p) for p in self.top],
            "low_stock_top_sellers": [_seller_row(p) for p in self.low_stock],
        }

    def low_stock_items(self) -> list[dict[str, Any]]:
        return [_seller_row(p) for p in self.low_stock]


def _seller_row(product: Product) -> dict[str, Any]:
    return {
        "title": product.title,
        "inv": product.inventory_quantity,
        "revenue": round(product.historical_revenue, 2),
    }


def _why_unknown_indicator() -> dict[str, str]:
    return indicator(
        "why_unknown",
        "Why this might be happening",
        "unknown",
        "low",
        "This signal is based on order pace. Common causes are traffic drops, "
        "conversion issues (checkout/discounts), or stockouts.",
    )


def _minute_of_day(value: datetime) -> int:
    return value.hour * 60 + value.minute

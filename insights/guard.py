"""
insights/guard.py

Per-(shop, insight type) idempotency guard.

A type that was recorded for a shop within its guard window is not
re-inserted. Windows are fixed policy per type; unknown types use
:data:`DEFAULT_GUARD_HOURS`.

If the history lookup fails the guard fails open: the insight is treated as
not recent and may be inserted again.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from insights.results import capture

logger = logging.getLogger(__name__)

GUARD_HOURS: dict[str, int] = {
    "inventory_pressure": 6,
    "inventory_velocity_risk": 6,
    "sales_rhythm_drift": 6,
    "dead_inventory": 24 * 7,
    "price_volatility_risk": 24,
}
DEFAULT_GUARD_HOURS = 6

# (shop_id, insight_type, since) -> True when a row exists at or after ``since``
RecentInsightQuery = Callable[[str, str, datetime], bool]


def guard_hours_for(insight_type: str) -> int:
    return GUARD_HOURS.get(insight_type, DEFAULT_GUARD_HOURS)


def guard_reason(hours: int) -> str:
    return f"guard_{hours}h"


class IdempotencyGuard:
    """Answers "was this type recorded for this shop within *hours*?"."""

    def __init__(self, query: RecentInsightQuery) -> None:
        self._query = query
        self.failures: list[str] = []

    def already_recent(
        self,
        shop_id: str,
        insight_type: str,
        hours: int,
        *,
        now: datetime,
    ) -> bool:
        since = now - timedelta(hours=hours)
        result = capture(self._query, shop_id, insight_type, since)
        if not result.ok:
            logger.warning(
                "Guard query failed; allowing insert shop_id=%s type=%s error=%s",
                shop_id,
                insight_type,
                result.message,
            )
            self.failures.append(insight_type)
            return False
        return bool(result.value)

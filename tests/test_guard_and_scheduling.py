"""
tests/test_guard_and_scheduling.py

Pytest unit tests for insights.guard and insights.scheduling.

Coverage
--------
- Per-type guard windows and reason strings
- Guard query receives now - window as its lower bound
- Guard fails open and records the failing type
- next_run_at: shop-local 11:00, strictly after now, DST and half-hour zones
- Unknown time zones fall back to UTC
- local_day_key in shop-local time
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from insights.guard import (
    DEFAULT_GUARD_HOURS,
    IdempotencyGuard,
    guard_hours_for,
    guard_reason,
)
from insights.scheduling import local_day_key, next_run_at, shop_zone

UTC = timezone.utc
NOW = datetime(2026, 10, 14, 18, 0, tzinfo=UTC)


class TestGuardWindows:
    @pytest.mark.parametrize(
        "insight_type, hours",
        [
            ("inventory_pressure", 6),
            ("inventory_velocity_risk", 6),
            ("sales_rhythm_drift", 6),
            ("dead_inventory", 168),
            ("price_volatility_risk", 24),
            ("something_new", DEFAULT_GUARD_HOURS),
        ],
    )
    def test_hours_per_type(self, insight_type, hours) -> None:
        assert guard_hours_for(insight_type) == hours

    def test_reason_format(self) -> None:
        assert guard_reason(168) == "guard_168h"


class TestIdempotencyGuard:
    def test_query_receives_window_start(self) -> None:
        calls = []

        def query(shop_id, insight_type, since):
            calls.append((shop_id, insight_type, since))
            return True

        guard = IdempotencyGuard(query)
        assert guard.already_recent("shop-1", "dead_inventory", 168, now=NOW) is True
        assert calls == [("shop-1", "dead_inventory", NOW - timedelta(hours=168))]
        assert guard.failures == []

    def test_no_recent_row(self) -> None:
        guard = IdempotencyGuard(lambda *_: False)
        assert guard.already_recent("shop-1", "inventory_pressure", 6, now=NOW) is False

    def test_fails_open_and_records_failure(self) -> None:
        def query(*_):
            raise ConnectionError("db down")

        guard = IdempotencyGuard(query)
        assert guard.already_recent("shop-1", "price_volatility_risk", 24, now=NOW) is False
        assert guard.failures == ["price_volatility_risk"]


class TestNextRunAt:
    @pytest.mark.parametrize(
        "tz, now, expected",
        [
            ("UTC", NOW, datetime(2026, 10, 15, 11, 0, tzinfo=UTC)),
            ("UTC", datetime(2026, 10, 14, 3, 0, tzinfo=UTC), datetime(2026, 10, 14, 11, 0, tzinfo=UTC)),
            ("Asia/Kolkata", NOW, datetime(2026, 10, 15, 5, 30, tzinfo=UTC)),
            ("America/New_York", NOW, datetime(2026, 10, 15, 15, 0, tzinfo=UTC)),
            # fall back: 11:00 EST on Nov 1
            (
                "America/New_York",
                datetime(2026, 10, 31, 16, 0, tzinfo=UTC),
                datetime(2026, 11, 1, 16, 0, tzinfo=UTC),
            ),
            # spring forward: 11:00 EDT on Mar 8
            (
                "America/New_York",
                datetime(2026, 3, 7, 17, 0, tzinfo=UTC),
                datetime(2026, 3, 8, 15, 0, tzinfo=UTC),
            ),
        ],
    )
    def test_local_run_hour(self, tz, now, expected) -> None:
        assert next_run_at(tz, now) == expected

    def test_exactly_run_hour_moves_to_next_day(self) -> None:
        now = datetime(2026, 10, 14, 11, 0, tzinfo=UTC)
        assert next_run_at("UTC", now) == datetime(2026, 10, 15, 11, 0, tzinfo=UTC)

    @pytest.mark.parametrize("tz", [None, "", "Mars/Olympus_Mons"])
    def test_unknown_zone_uses_utc(self, tz) -> None:
        assert next_run_at(tz, NOW) == datetime(2026, 10, 15, 11, 0, tzinfo=UTC)
        assert shop_zone(tz) == ZoneInfo("UTC")

    def test_naive_now_is_read_as_utc(self) -> None:
        assert next_run_at("UTC", NOW.replace(tzinfo=None)) == datetime(2026, 10, 15, 11, 0, tzinfo=UTC)

    def test_run_hour_inside_dst_gap(self) -> None:
        # 02:00 does not exist in New York on 2026-03-08
        now = datetime(2026, 3, 7, 12, 0, tzinfo=UTC)
        result = next_run_at("America/New_York", now, run_hour=2)
        assert result > now
        assert result.astimezone(ZoneInfo("America/New_York")).date().isoformat() == "2026-03-08"

    @pytest.mark.parametrize("tz", ["UTC", "Asia/Kolkata", "Australia/Adelaide", "America/Los_Angeles"])
    def test_always_strictly_after_now(self, tz) -> None:
        for hours in range(0, 48, 5):
            now = NOW + timedelta(hours=hours, minutes=17)
            result = next_run_at(tz, now)
            assert now < result <= now + timedelta(days=1, hours=1)
            assert result.tzinfo is not None


class TestLocalDayKey:
    @pytest.mark.parametrize(
        "tz, expected",
        [("UTC", "2026-10-14"), ("Asia/Tokyo", "2026-10-15"), ("America/Los_Angeles", "2026-10-14")],
    )
    def test_day_key(self, tz, expected) -> None:
        assert local_day_key(tz, NOW) == expected

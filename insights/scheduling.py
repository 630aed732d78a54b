"""
insights/scheduling.py

Next-scan timestamp computation.

Scans run once a day at 11:00 shop-local time. The next run is derived from
the shop's local wall-clock date and hour (via :mod:`zoneinfo`), never from a
fixed UTC offset, so DST transitions and half-hour zones land correctly.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

RUN_HOUR_LOCAL = 11


def shop_zone(shop_timezone: str | None) -> ZoneInfo:
    """Return the shop's zone, or UTC for a missing or unknown name."""
    try:
        return ZoneInfo(shop_timezone or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def local_day_key(shop_timezone: str | None, now: datetime | None = None) -> str:
    """Shop-local calendar date of *now* as ``YYYY-MM-DD``."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(shop_zone(shop_timezone)).date().isoformat()


def next_run_at(
    shop_timezone: str | None,
    now: datetime | None = None,
    *,
    run_hour: int = RUN_HOUR_LOCAL,
) -> datetime:
    """
    Return the first shop-local ``run_hour:00`` strictly after *now*, in UTC.

    Parameters
    ----------
    shop_timezone:
        IANA zone name; unknown or empty values fall back to UTC.
    now:
        Current instant. Defaults to the wall clock. Naive values are read
        as UTC.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    zone = shop_zone(shop_timezone)
    local_now = now.astimezone(zone)
    day: date = local_now.date()
    if local_now.hour >= run_hour:
        day = day + timedelta(days=1)

    candidate = _resolve_local(day, run_hour, zone)
    # A DST gap can shift the wall time; step a day forward if it is not after now.
    while candidate <= now:
        day = day + timedelta(days=1)
        candidate = _resolve_local(day, run_hour, zone)
    return candidate.astimezone(timezone.utc)


def _resolve_local(day: date, hour: int, zone: ZoneInfo) -> datetime:
    naive = datetime.combine(day, time(hour=hour))
    aware = naive.replace(tzinfo=zone, fold=0)
    # Round-trip through UTC so non-existent wall times normalise.
    return aware.astimezone(timezone.utc).astimezone(zone)

"""
app/domain/scan.py

Domain models for shop scans.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ScanMode(str, Enum):
    """
    ``manual`` scans are user triggered; ``auto`` scans come from the sweep
    and are the only ones that may send the daily digest.
    """

    MANUAL = "manual"
    AUTO = "auto"


class ScanStatus(str, Enum):
    OK = "ok"
    ERROR = "error"


@dataclass(frozen=True)
class ShopCredentials:
    shop_id: str
    shop_domain: str
    access_token: str


@dataclass(frozen=True)
class SkippedCandidate:
    """
    A candidate that was evaluated but not persisted, and why.
    """

    type: str
    reason: str


@dataclass(frozen=True)
class DigestMarker:
    """
    Records the shop-local day a digest was sent, to prevent a second send.
    """

    day_key: str
    sent_at: str
    count: int

    @classmethod
    def from_summary(cls, summary: dict[str, Any] | None) -> DigestMarker | None:
        raw = (summary or {}).get("digest")
        if not isinstance(raw, dict) or not raw.get("day_key"):
            return None
        try:
            count = int(raw.get("count") or 0)
        except (TypeError, ValueError):
            count = 0
        return cls(day_key=str(raw["day_key"]), sent_at=str(raw.get("sent_at") or ""), count=count)


@dataclass
class ScanSummary:
    """
    Structured result of one shop scan, stored as ``last_scan_summary``.

    Attributes
    ----------
    inserted:
        Number of canonical insights upserted.
    keys:
        Insight types that were upserted, in evaluation order.
    evaluated:
        Every detector type that ran, in evaluation order.
    skipped:
        Candidates dropped by the publishing contract or the guard.
    diag:
        Lightweight fetch diagnostics (record counts).
    """

    status: ScanStatus = ScanStatus.OK
    mode: ScanMode = ScanMode.MANUAL
    inserted: int = 0
    keys: list[str] = field(default_factory=list)
    evaluated: list[str] = field(default_factory=list)
    skipped: list[SkippedCandidate] = field(default_factory=list)
    diag: dict[str, Any] = field(default_factory=dict)
    timezone: str = "UTC"
    error: str | None = None
    digest: DigestMarker | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "status": self.status.value,
            "mode": self.mode.value,
            "inserted": self.inserted,
            "keys": list(self.keys),
            "evaluated": list(self.evaluated),
            "skipped": [asdict(s) for s in self.skipped],
            "diag": dict(self.diag),
            "timezone": self.timezone,
        }
        if self.error is not None:
            payload["error"] = self.error
        if self.digest is not None:
            payload["digest"] = asdict(self.digest)
        return payload


@dataclass(frozen=True)
class ScanRunRecord:
    """
    Rolling per-shop snapshot of the latest scan. One row per shop.
    """

    shop_id: str
    last_scan_at: datetime
    next_scan_at: datetime
    last_scan_status: ScanStatus
    last_scan_summary: dict[str, Any]


@dataclass(frozen=True)
class DigestSettings:
    shop_id: str
    email: str | None
    daily_enabled: bool = False
    weekly_enabled: bool = False

    @property
    def wants_daily(self) -> bool:
        return self.daily_enabled and bool(self.email and "@" in self.email)


@dataclass(frozen=True)
class ShopScanResult:
    """
    Per-shop outcome inside a batch sweep.
    """

    shop_domain: str
    ok: bool
    summary: dict[str, Any] | None = None
    error: str | None = None


@dataclass(frozen=True)
class BatchScanResult:
    now: datetime
    due: int
    ran: int
    results: list[ShopScanResult] = field(default_factory=list)

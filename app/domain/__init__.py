"""
app/domain package marker.
"""

from app.domain.scan import (
    BatchScanResult,
    DigestMarker,
    DigestSettings,
    ScanMode,
    ScanRunRecord,
    ScanStatus,
    ScanSummary,
    ShopCredentials,
    ShopScanResult,
    SkippedCandidate,
)

__all__ = [
    "BatchScanResult",
    "DigestMarker",
    "DigestSettings",
    "ScanMode",
    "ScanRunRecord",
    "ScanStatus",
    "ScanSummary",
    "ShopCredentials",
    "ShopScanResult",
    "SkippedCandidate",
]

"""
app/schemas package marker.
"""

from app.schemas.scan import (
    BatchScanResponse,
    HealthResponse,
    InsightListResponse,
    InsightResponse,
    ScanStatusResponse,
    ScanSummaryResponse,
    ShopScanResultResponse,
    SkippedCandidateResponse,
)

__all__ = [
    "BatchScanResponse",
    "HealthResponse",
    "InsightListResponse",
    "InsightResponse",
    "ScanStatusResponse",
    "ScanSummaryResponse",
    "ShopScanResultResponse",
    "SkippedCandidateResponse",
]

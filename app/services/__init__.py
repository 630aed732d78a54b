"""
app/services package marker.
"""

from app.services.batch_scan_service import BatchScanService, run_due_scans
from app.services.scan_orchestrator import (
    InsightPersistenceError,
    ScanFetchError,
    ScanOrchestrator,
)
from app.services.shop_scan_service import (
    ShopNotFoundError,
    ShopNotInstalledError,
    build_scan_orchestrator,
    resolve_shop_credentials,
    run_manual_scan,
)

__all__ = [
    "BatchScanService",
    "run_due_scans",
    "InsightPersistenceError",
    "ScanFetchError",
    "ScanOrchestrator",
    "ShopNotFoundError",
    "ShopNotInstalledError",
    "build_scan_orchestrator",
    "resolve_shop_credentials",
    "run_manual_scan",
]

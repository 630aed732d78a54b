"""
app/repositories package marker.
"""

from app.repositories.digest_settings_repository import DigestSettingsRepository
from app.repositories.insight_repository import InsightRepository
from app.repositories.price_snapshot_repository import PriceSnapshotRepository
from app.repositories.scan_run_repository import ScanRunRepository
from app.repositories.scan_store import ScanStore, SqlScanStore
from app.repositories.shop_repository import ShopRepository

__all__ = [
    "DigestSettingsRepository",
    "InsightRepository",
    "PriceSnapshotRepository",
    "ScanRunRepository",
    "ScanStore",
    "ShopRepository",
    "SqlScanStore",
]

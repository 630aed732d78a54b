"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.digest_settings import DigestSettingsRecord
from db.models.insight import Insight
from db.models.price_snapshot import ProductPriceSnapshot
from db.models.scan_run import ScanRun
from db.models.shop import Shop

__all__ = [
    "DigestSettingsRecord",
    "Insight",
    "ProductPriceSnapshot",
    "ScanRun",
    "Shop",
]

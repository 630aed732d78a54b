"""
app/api/routers package marker.
"""

from app.api.routers.cron_router import router as cron_router
from app.api.routers.scan_router import router as scan_router

__all__ = [
    "cron_router",
    "scan_router",
]

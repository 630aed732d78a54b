"""
app/api/routers/cron_router.py

Cron-triggered sweep over all shops whose scan is due.

Every shop gets a result entry; one failing shop never fails the request.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.dependencies import require_cron_secret
from app.schemas.scan import BatchScanResponse, ShopScanResultResponse
from app.services.batch_scan_service import run_due_scans
from db.session import get_db

router = APIRouter(prefix="/cron", tags=["cron"])


@router.post(
    "/scan",
    response_model=BatchScanResponse,
    dependencies=[Depends(require_cron_secret)],
)
def cron_scan(db: Session = Depends(get_db)) -> BatchScanResponse:
    batch = run_due_scans(db)
    return BatchScanResponse(
        now=batch.now,
        due=batch.due,
        ran=batch.ran,
        results=[
            ShopScanResultResponse(
                shop=result.shop_domain,
                ok=result.ok,
                summary=result.summary,
                error=result.error,
            )
            for result in batch.results
        ],
    )

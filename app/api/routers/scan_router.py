"""
app/api/routers/scan_router.py

Manual scan trigger and read endpoints for one shop.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.connectors.shopify_connector import normalize_shop_domain
from app.repositories.insight_repository import InsightRepository
from app.repositories.scan_run_repository import ScanRunRepository
from app.repositories.shop_repository import ShopRepository
from app.schemas.scan import (
    InsightListResponse,
    InsightResponse,
    ScanStatusResponse,
    ScanSummaryResponse,
)
from app.services.scan_orchestrator import InsightPersistenceError, ScanFetchError
from app.services.shop_scan_service import (
    ShopNotFoundError,
    ShopNotInstalledError,
    run_manual_scan,
)
from db.models.shop import Shop
from db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/shops", tags=["scans"])


def _get_shop(db: Session, shop_domain: str) -> Shop:
    domain = normalize_shop_domain(shop_domain)
    shop = ShopRepository(db).get_by_domain(domain)
    if shop is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Shop '{domain}' is not installed.",
        )
    return shop


@router.post(
    "/{shop_domain}/scan",
    response_model=ScanSummaryResponse,
    status_code=status.HTTP_200_OK,
)
def trigger_scan(shop_domain: str, db: Session = Depends(get_db)) -> ScanSummaryResponse:
    """
    Run a manual scan for one shop and return its summary.

    Manual scans never send the daily digest.
    """
    try:
        summary = run_manual_scan(db, shop_domain)
    except ShopNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ShopNotInstalledError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ScanFetchError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except InsightPersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc

    return ScanSummaryResponse(shop_domain=normalize_shop_domain(shop_domain), **summary.to_dict())


@router.get("/{shop_domain}/scan-status", response_model=ScanStatusResponse)
def get_scan_status(shop_domain: str, db: Session = Depends(get_db)) -> ScanStatusResponse:
    shop = _get_shop(db, shop_domain)
    record = ScanRunRepository(db).get(str(shop.id))
    if record is None:
        return ScanStatusResponse(shop_domain=shop.shop_domain)
    return ScanStatusResponse(
        shop_domain=shop.shop_domain,
        last_scan_at=record.last_scan_at,
        next_scan_at=record.next_scan_at,
        last_scan_status=record.last_scan_status.value,
        last_scan_summary=record.last_scan_summary,
    )


@router.get("/{shop_domain}/insights", response_model=InsightListResponse)
def list_insights(shop_domain: str, db: Session = Depends(get_db)) -> InsightListResponse:
    """Current insights for the shop, most severe first."""
    shop = _get_shop(db, shop_domain)
    rows = InsightRepository(db).list_for_shop(str(shop.id))
    return InsightListResponse(
        shop_domain=shop.shop_domain,
        insights=[
            InsightResponse(
                type=row.type,
                title=row.title,
                description=row.description,
                severity=row.severity,
                suggested_action=row.suggested_action,
                confidence=row.confidence,
                created_at=row.created_at,
                data_snapshot=row.data_snapshot or {},
            )
            for row in rows
        ],
    )

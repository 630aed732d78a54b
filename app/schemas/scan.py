"""
Schemas for scan trigger, scan status, insight listing and cron sweep endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class SkippedCandidateResponse(BaseModel):
    type: str
    reason: str


class ScanSummaryResponse(BaseModel):
    shop_domain: str
    status: str
    mode: str
    inserted: int
    keys: list[str] = Field(default_factory=list)
    evaluated: list[str] = Field(default_factory=list)
    skipped: list[SkippedCandidateResponse] = Field(default_factory=list)
    diag: dict[str, Any] = Field(default_factory=dict)
    timezone: str
    error: str | None = None
    digest: dict[str, Any] | None = None


class ScanStatusResponse(BaseModel):
    shop_domain: str
    last_scan_at: datetime | None = None
    next_scan_at: datetime | None = None
    last_scan_status: str | None = None
    last_scan_summary: dict[str, Any] | None = None


class InsightResponse(BaseModel):
    type: str
    title: str
    description: str
    severity: str
    suggested_action: str
    confidence: str
    created_at: datetime
    data_snapshot: dict[str, Any] = Field(default_factory=dict)


class InsightListResponse(BaseModel):
    shop_domain: str
    insights: list[InsightResponse] = Field(default_factory=list)


class ShopScanResultResponse(BaseModel):
    shop: str
    ok: bool
    summary: dict[str, Any] | None = None
    error: str | None = None


class BatchScanResponse(BaseModel):
    now: datetime
    due: int
    ran: int
    results: list[ShopScanResultResponse] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str
    scheduler_running: bool

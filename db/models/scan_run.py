"""
db/models/scan_run.py

Rolling snapshot of each shop's latest scan; one row per shop, overwritten
on every scan.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class ScanRun(Base):
    __tablename__ = "scan_runs"

    shop_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("shops.id", ondelete="CASCADE"),
        primary_key=True,
    )
    last_scan_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    next_scan_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_scan_status: Mapped[str] = mapped_column(String(16), nullable=False)
    last_scan_summary: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (Index("ix_scan_runs_next_scan_at", "next_scan_at"),)

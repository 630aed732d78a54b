"""
db/models/digest_settings.py

Per-shop email digest preferences, owned by the settings UI. Scans only
read this table.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class DigestSettingsRecord(Base, TimestampMixin):
    __tablename__ = "digest_settings"

    shop_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("shops.id", ondelete="CASCADE"),
        primary_key=True,
    )
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    daily_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    weekly_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

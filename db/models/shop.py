"""
db/models/shop.py

Installed shops. ``access_token`` is cleared when the app is uninstalled;
only shops holding a token are eligible for automatic scans.
"""

from __future__ import annotations

import uuid

from sqlalchemy import String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class Shop(Base, TimestampMixin):
    __tablename__ = "shops"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    shop_domain: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        comment="Normalised *.myshopify.com host",
    )
    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)

"""
app/repositories/digest_settings_repository.py

Read-only access to per-shop digest preferences.
"""

from __future__ import annotations

import uuid

from sqlalchemy.orm import Session

from app.domain.scan import DigestSettings
from db.models.digest_settings import DigestSettingsRecord


class DigestSettingsRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, shop_id: str) -> DigestSettings | None:
        row = self._session.get(DigestSettingsRecord, uuid.UUID(shop_id))
        if row is None:
            return None
        return DigestSettings(
            shop_id=shop_id,
            email=(row.email or "").strip() or None,
            daily_enabled=bool(row.daily_enabled),
            weekly_enabled=bool(row.weekly_enabled),
        )

"""
app/repositories/shop_repository.py

Lookup of installed shops by domain.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.shop import Shop


class ShopRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_domain(self, shop_domain: str) -> Shop | None:
        stmt = select(Shop).where(Shop.shop_domain == shop_domain)
        return self._session.scalars(stmt).first()

"""
app/repositories/insight_repository.py

Persistence layer for canonical insights.

The caller controls commit/rollback; this repository never commits on its own.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import case, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from db.base import utc_now
from db.models.insight import UPSERT_CONSTRAINT, Insight
from insights.digest import SEVERITY_RANK, DigestInsight
from insights.normalizer import CanonicalInsight


class InsightRepository:
    """
    Repository for writing and querying ``insights`` rows.

    Upsert semantics: a row whose ``(shop_id, type)`` already exists is
    replaced in place and its ``created_at`` refreshed.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def upsert_insights(self, rows: Sequence[CanonicalInsight]) -> int:
        """
        Upsert canonical insights; duplicates within *rows* are last-write-wins.

        Returns
        -------
        int
            Number of rows written (inserted + updated).
        """
        if not rows:
            return 0

        deduped: dict[tuple[str, str], CanonicalInsight] = {}
        for row in rows:
            deduped[(row.shop_id, row.type)] = row

        payloads: list[dict[str, Any]] = [
            {
                "id": uuid.uuid4(),
                "shop_id": uuid.UUID(row.shop_id),
                "type": row.type,
                "title": row.title,
                "description": row.description,
                "severity": row.severity,
                "suggested_action": row.suggested_action,
                "confidence": row.confidence,
                "data_snapshot": row.data_snapshot(),
            }
            for row in deduped.values()
        ]
        stmt = insert(Insight).values(payloads)
        stmt = stmt.on_conflict_do_update(
            constraint=UPSERT_CONSTRAINT,
            set_={
                "title": stmt.excluded.title,
                "description": stmt.excluded.description,
                "severity": stmt.excluded.severity,
                "suggested_action": stmt.excluded.suggested_action,
                "confidence": stmt.excluded.confidence,
                "data_snapshot": stmt.excluded.data_snapshot,
                "created_at": utc_now(),
            },
        ).returning(Insight.id)
        return len(self._session.scalars(stmt).all())

    def exists_since(self, shop_id: str, insight_type: str, since: datetime) -> bool:
        stmt = (
            select(Insight.id)
            .where(
                Insight.shop_id == uuid.UUID(shop_id),
                Insight.type == insight_type,
                Insight.created_at >= since,
            )
            .limit(1)
        )
        return self._session.scalars(stmt).first() is not None

    def list_for_shop(self, shop_id: str) -> list[Insight]:
        """Return the shop's insights, most severe first, then newest first."""
        stmt = (
            select(Insight)
            .where(Insight.shop_id == uuid.UUID(shop_id))
            .order_by(_severity_order(), Insight.created_at.desc())
        )
        return list(self._session.scalars(stmt).all())

    def list_actionable(self, shop_id: str) -> list[DigestInsight]:
        return [
            DigestInsight(
                type=row.type,
                title=row.title,
                severity=row.severity,
                description=row.description,
                suggested_action=row.suggested_action,
                data_snapshot=row.data_snapshot or {},
            )
            for row in self.list_for_shop(shop_id)
            if row.severity in SEVERITY_RANK
        ]


def _severity_order() -> Any:
    return case(
        *((Insight.severity == name, rank) for name, rank in SEVERITY_RANK.items()),
        else_=len(SEVERITY_RANK),
    )

"""
insights/normalizer.py

Publishing contract for detector output.

:func:`normalize_candidate` is the only way to obtain a
:class:`CanonicalInsight`. A candidate that cannot explain itself (non-empty
type, title, description and suggested action) is rejected and never
persisted; everything else is coerced into a fixed shape:

- ``severity`` outside ``high|medium|low`` becomes ``medium``
- missing ``confidence`` comes from :data:`DEFAULT_CONFIDENCE`
- ``metrics`` and ``evidence`` are deep-cleaned (see :func:`clean_value`)
- ``indicators`` are folded into ``evidence["indicators"]``
- ``items`` are projected into at most five ``items_preview`` rows

Normalizing an already canonical insight returns an equal insight.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from insights.base import SEVERITIES
from insights.context_builder import parse_datetime

REJECT_CONTRACT_INCOMPLETE = "contract_incomplete"

DEFAULT_SEVERITY = "medium"
CONFIDENCES: tuple[str, ...] = ("high", "medium", "low")

DEFAULT_CONFIDENCE: dict[str, str] = {
    "inventory_pressure": "high",
    "dead_inventory": "medium",
    "price_volatility_risk": "medium",
    "sales_rhythm_drift": "low",
    "inventory_velocity_risk": "medium",
}
FALLBACK_CONFIDENCE = "medium"

MAX_ARRAY_ITEMS = 10
MAX_PREVIEW_ITEMS = 5


@dataclass(frozen=True)
class CanonicalInsight:
    """A validated insight; the only form ever persisted."""

    shop_id: str
    type: str
    title: str
    description: str
    severity: str
    suggested_action: str
    confidence: str
    evaluated_at: datetime
    evidence: dict[str, Any] | None = None
    metrics: dict[str, Any] | None = None
    items_preview: list[Any] | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    def data_snapshot(self) -> dict[str, Any]:
        """JSON-ready payload stored next to the textual columns."""
        return {
            "confidence": self.confidence,
            "evaluated_at": self.evaluated_at.isoformat(),
            "evidence": self.evidence,
            "metrics": self.metrics,
            "items_preview": self.items_preview,
            "raw": self.raw,
        }

    def as_candidate(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "severity": self.severity,
            "suggested_action": self.suggested_action,
            "confidence": self.confidence,
            "evaluated_at": self.evaluated_at,
            "evidence": self.evidence,
            "metrics": self.metrics,
            "items_preview": self.items_preview,
        }


def normalize_candidate(
    shop_id: str,
    candidate: Mapping[str, Any] | CanonicalInsight | None,
    *,
    now: datetime,
) -> CanonicalInsight | None:
    """
    Validate *candidate* against the publishing contract.

    Returns ``None`` when any of type, title, description (or ``summary``)
    and suggested action is missing or blank.
    """
    if isinstance(candidate, CanonicalInsight):
        source: Mapping[str, Any] = candidate.as_candidate()
        raw = candidate.raw
    elif isinstance(candidate, Mapping):
        source = candidate
        raw = dict(candidate)
    else:
        return None

    insight_type = _text(source.get("type")) or _text(source.get("key"))
    title = _text(source.get("title"))
    description = _text(source.get("description")) or _text(source.get("summary"))
    suggested_action = _text(source.get("suggested_action")) or _text(
        source.get("suggestedAction")
    )
    if not (insight_type and title and description and suggested_action):
        return None

    severity = _text(source.get("severity")).lower()
    if severity not in SEVERITIES:
        severity = DEFAULT_SEVERITY

    confidence = _text(source.get("confidence")).lower()
    if confidence not in CONFIDENCES:
        confidence = DEFAULT_CONFIDENCE.get(insight_type, FALLBACK_CONFIDENCE)

    evidence = source.get("evidence")
    evidence = dict(evidence) if isinstance(evidence, Mapping) else {}
    indicators = source.get("indicators")
    if isinstance(indicators, Sequence) and not isinstance(indicators, (str, bytes)):
        evidence["indicators"] = list(indicators)

    metrics = source.get("metrics")
    preview_source = source.get("items_preview")
    if preview_source is None:
        preview_source = source.get("items")

    evaluated_at = parse_datetime(source.get("evaluated_at") or source.get("evaluatedAt"))

    return CanonicalInsight(
        shop_id=shop_id,
        type=insight_type,
        title=title,
        description=description,
        severity=severity,
        suggested_action=suggested_action,
        confidence=confidence,
        evaluated_at=evaluated_at or parse_datetime(now) or now,
        evidence=_as_dict(clean_value(evidence)),
        metrics=_as_dict(clean_value(metrics)) if isinstance(metrics, Mapping) else None,
        items_preview=build_items_preview(preview_source),
        raw=raw,
    )


def clean_value(value: Any) -> Any:
    """
    Deep-clean a JSON-like value.

    ``None`` and non-finite numbers are removed, strings are trimmed and
    dropped when empty, sequences keep their first ten cleaned elements, and
    containers that end up empty are dropped (returned as ``None``). Applying
    the function to its own output is a no-op.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Mapping):
        cleaned = {}
        for key, item in value.items():
            item = clean_value(item)
            if item is not None:
                cleaned[str(key)] = item
        return cleaned or None
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [clean_value(item) for item in value]
        kept = [item for item in items if item is not None][:MAX_ARRAY_ITEMS]
        return kept or None
    return str(value).strip() or None


def build_items_preview(items: Any) -> list[Any] | None:
    """Project up to five items to ``{title, inv, days, bucket}``."""
    if not isinstance(items, (list, tuple)) or not items:
        return None
    preview = []
    for item in items[:MAX_PREVIEW_ITEMS]:
        if isinstance(item, Mapping):
            item = {
                "title": _first(item, "title", "name", "product_title"),
                "inv": _first(item, "inv", "inventory", "totalInventory", "inventory_quantity"),
                "days": _first(item, "days", "days_since_last_sale", "daysSince"),
                "bucket": item.get("bucket"),
            }
        cleaned = clean_value(item)
        if cleaned is not None:
            preview.append(cleaned)
    return preview or None


def _first(mapping: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if mapping.get(key) is not None:
            return mapping[key]
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _as_dict(value: Any) -> dict[str, Any] | None:
    return value if isinstance(value, dict) else None

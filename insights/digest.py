"""
insights/digest.py

Plain-text daily digest rendering.

Pure functions: the scan orchestrator fetches the shop's actionable insights,
orders them with :func:`order_actionable`, and sends the output of
:func:`render_daily_email` under :func:`digest_subject`.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

DEFAULT_BRAND = "MerchPulse"
DIVIDER = "─" * 40

SEVERITY_RANK: dict[str, int] = {"high": 0, "medium": 1, "low": 2}

MAX_EVIDENCE_LINES = 6
MAX_ITEM_LINES = 6

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class DigestInsight:
    type: str
    title: str
    severity: str
    description: str | None = None
    suggested_action: str | None = None
    data_snapshot: Mapping[str, Any] = field(default_factory=dict)


def order_actionable(insights: Iterable[DigestInsight]) -> list[DigestInsight]:
    """Keep valid severities only, most severe first (stable within a rank)."""
    actionable = [i for i in insights if i.severity in SEVERITY_RANK]
    return sorted(actionable, key=lambda i: SEVERITY_RANK[i.severity])


def digest_subject(count: int, brand: str = DEFAULT_BRAND) -> str:
    noun = "issue" if count == 1 else "issues"
    return f"{brand} — {count} {noun} need attention"


def clamp_line(text: Any, limit: int = 160) -> str:
    """Collapse whitespace and truncate to *limit* characters with an ellipsis."""
    if text is None:
        return ""
    collapsed = _WHITESPACE.sub(" ", str(text)).strip()
    if len(collapsed) > limit:
        return collapsed[: limit - 1] + "…"
    return collapsed


def render_daily_email(
    shop_domain: str,
    insights: Sequence[DigestInsight],
    *,
    today: date,
    brand: str = DEFAULT_BRAND,
    app_url: str | None = None,
) -> str:
    lines: list[str] = [
        f"{brand} — Daily scan",
        f"{shop_domain} • {today.strftime('%d %b %Y')}",
        DIVIDER,
        "",
    ]

    if not insights:
        lines += [
            "✅ No issues found today.",
            "",
            "If you want extra confidence, open the app and run a manual scan.",
            "",
        ]
        if app_url:
            lines.append(f"Open {brand}: {app_url}")
        return "\n".join(lines)

    lines += [
        f"Issues found: {len(insights)} (showing all)",
        "Fix these first — they’re the highest leverage items for a solo merchant.",
        "",
        DIVIDER,
    ]

    for index, insight in enumerate(insights, start=1):
        title = clamp_line(insight.title, 120) or f"Insight #{index}"
        what = clamp_line(insight.description, 220)
        action = clamp_line(insight.suggested_action, 220)
        items = _item_lines(insight.data_snapshot)
        evidence = _evidence_lines(insight.data_snapshot)

        lines += ["", f"{index}. {title}", ""]
        if what:
            lines += ["What we saw:", f"- {what}", ""]
        if action:
            lines += ["Do this now:", f"- {action}", ""]
        if items:
            lines.append("Items (sample):")
            lines += [f"- {clamp_line(item, 90)}" for item in items]
            lines.append("")
        if evidence:
            lines.append("Evidence:")
            lines += [f"- {clamp_line(line, 120)}" for line in evidence]
            lines.append("")
        lines.append(DIVIDER)

    lines.append("")
    if app_url:
        lines.append(f"Open {brand}: {app_url}")
    else:
        lines.append(f"Open {brand} in Shopify Admin to see full details.")
    return "\n".join(lines)


def _item_lines(snapshot: Mapping[str, Any]) -> list[str]:
    items = snapshot.get("items_preview") or snapshot.get("items") or []
    if not isinstance(items, list):
        return []
    lines = []
    for item in items[:MAX_ITEM_LINES]:
        if isinstance(item, Mapping):
            label = item.get("title") or item.get("name") or item.get("id")
            if not label:
                continue
            inv = item.get("inv")
            lines.append(f"{label} ({inv} left)" if inv is not None else str(label))
        elif item is not None:
            lines.append(str(item))
    return lines


def _evidence_lines(snapshot: Mapping[str, Any]) -> list[str]:
    evidence = snapshot.get("evidence")
    metrics = snapshot.get("metrics")
    lines: list[str] = []

    if isinstance(evidence, Mapping):
        for record in evidence.get("indicators") or []:
            if isinstance(record, Mapping):
                label = record.get("label") or record.get("key") or ""
                detail = record.get("evidence") or record.get("status") or ""
                lines.append(f"{label}: {detail}" if label else str(detail))
        for key, value in evidence.items():
            if key != "indicators":
                lines.append(f"{key}: {_format_value(value)}")
    elif isinstance(metrics, Mapping):
        lines = [f"{key}: {_format_value(value)}" for key, value in metrics.items()]

    return [line for line in lines if line][:MAX_EVIDENCE_LINES]


def _format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (str, int, float)):
        return str(value)
    return json.dumps(value, default=str, ensure_ascii=False)

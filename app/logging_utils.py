"""
app/logging_utils.py

Scan lifecycle events as one compact JSON object per log line, e.g.

    {"event": "candidate_skipped", "reason": "guard_6h", "shop_id": "...", "type": "dead_inventory"}

Fields whose value is ``None`` are omitted.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any


def log_event(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    if not logger.isEnabledFor(level):
        return
    payload = {key: value for key, value in fields.items() if value is not None}
    payload["event"] = event
    logger.log(level, json.dumps(payload, default=str, sort_keys=True))


def elapsed_ms(started_monotonic: float) -> int:
    """Milliseconds since a ``time.monotonic()`` reading."""
    return int((time.monotonic() - started_monotonic) * 1000)

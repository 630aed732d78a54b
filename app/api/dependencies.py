"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import Header, HTTPException, status

from app.config import get_cron_settings

logger = logging.getLogger(__name__)


def require_cron_secret(authorization: str | None = Header(default=None)) -> None:
    """
    Accept only ``Authorization: Bearer <CRON_SECRET>``.

    The endpoint is closed (503) while ``CRON_SECRET`` is unset.
    """

    secret = get_cron_settings().secret
    if not secret:
        logger.warning("Cron trigger rejected: CRON_SECRET is not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron trigger is not configured.",
        )

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.strip(), secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron credentials.",
        )

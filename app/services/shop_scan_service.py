"""
app/services/shop_scan_service.py

Wiring between installed shops, the database store and the outbound
connectors. Used by the manual scan route, the cron route and the scheduler.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.config import (
    get_email_settings,
    get_external_http_settings,
    get_scan_settings,
    get_shopify_settings,
)
from app.connectors.resend_mailer import ResendMailer
from app.connectors.shopify_connector import ShopifyConnector, normalize_shop_domain
from app.domain.scan import ScanMode, ScanSummary, ShopCredentials
from app.repositories.scan_store import SqlScanStore
from app.repositories.shop_repository import ShopRepository
from app.services.scan_orchestrator import ScanOrchestrator

logger = logging.getLogger(__name__)


class ShopNotFoundError(ValueError):
    """Raised when no installed shop matches the requested domain."""


class ShopNotInstalledError(RuntimeError):
    """Raised when the shop exists but holds no access token."""


def resolve_shop_credentials(session: Session, shop_domain: str) -> ShopCredentials:
    domain = normalize_shop_domain(shop_domain)
    shop = ShopRepository(session).get_by_domain(domain)
    if shop is None:
        raise ShopNotFoundError(f"Shop '{domain}' is not installed.")
    if not shop.access_token:
        raise ShopNotInstalledError(f"Shop '{domain}' has no access token.")
    return ShopCredentials(
        shop_id=str(shop.id),
        shop_domain=shop.shop_domain,
        access_token=shop.access_token,
    )


def build_scan_orchestrator(
    session: Session,
    *,
    connector: ShopifyConnector | None = None,
    mailer: ResendMailer | None = None,
) -> ScanOrchestrator:
    """
    Assemble a :class:`ScanOrchestrator` over *session*.

    The digest stage is disabled when the mailer is not configured.
    """
    http_settings = get_external_http_settings()
    email_settings = get_email_settings()
    connector = connector or ShopifyConnector(
        settings=get_shopify_settings(),
        http_settings=http_settings,
    )
    mailer = mailer or ResendMailer(settings=email_settings, http_settings=http_settings)
    if not mailer.configured:
        logger.info("Digest email disabled; RESEND_API_KEY unset or DIGEST_EMAIL_ENABLED=false")

    return ScanOrchestrator(
        store=SqlScanStore(session),
        fetch_payload=connector.fetch_shop_payload,
        send_email=mailer.send_digest_email if mailer.configured else None,
        scan_settings=get_scan_settings(),
        email_settings=email_settings,
    )


def run_manual_scan(session: Session, shop_domain: str) -> ScanSummary:
    """
    Scan one shop immediately.

    Raises ShopNotFoundError / ShopNotInstalledError for the lookup, and the
    orchestrator's fatal errors for the scan itself.
    """
    credentials = resolve_shop_credentials(session, shop_domain)
    return build_scan_orchestrator(session).run(credentials, mode=ScanMode.MANUAL)

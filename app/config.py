"""
app/config.py

Application-level configuration helpers.

Every settings group is a frozen dataclass built once from environment
variables (after `.env` / `.env.local` are loaded) and cached. Unparseable
values fall back to the default rather than failing startup; getters clamp
numeric values into their valid range.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from typing import TypeVar

from db.config import load_env_files
from insights.registry import DEFAULT_SALES_RHYTHM_VARIANT, SALES_RHYTHM_VARIANTS
from insights.scheduling import RUN_HOUR_LOCAL

T = TypeVar("T")

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    load_env_files()


def _env(name: str, default: T, parse: Callable[[str], T]) -> T:
    """
    Read *name* with *parse*; blank, missing or unparseable values give *default*.
    """

    _load_env_once()
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return parse(raw)
    except ValueError:
        return default


def _get_bool_env(name: str, default: bool) -> bool:
    return _env(name, default, lambda raw: raw.lower() in _TRUE_VALUES)


def _get_int_env(name: str, default: int) -> int:
    return _env(name, default, int)


def _get_float_env(name: str, default: float) -> float:
    return _env(name, default, float)


def _get_str_env(name: str, default: str) -> str:
    return _env(name, default, str)


def _get_optional_str_env(name: str) -> str | None:
    return _env(name, None, str)


@dataclass(frozen=True)
class ScanSettings:
    """
    Scan orchestration settings.

    ``run_hour_local`` is the scheduler's fixed shop-local hour and is not
    read from the environment.
    """

    lookback_days: int = 60
    sales_rhythm_variant: str = DEFAULT_SALES_RHYTHM_VARIANT
    run_hour_local: int = RUN_HOUR_LOCAL
    sweep_interval_minutes: int = 15
    scheduler_enabled: bool = True


@dataclass(frozen=True)
class ExternalHTTPSettings:
    """
    Shared HTTP behavior settings for external connectors.
    """

    timeout_seconds: float = 15.0
    max_retries: int = 3
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    rate_limit_per_second: float = 2.0


@dataclass(frozen=True)
class ShopifySettings:
    api_version: str = "2025-01"
    orders_page_size: int = 250
    products_page_size: int = 250
    max_pages: int = 8


@dataclass(frozen=True)
class EmailSettings:
    """
    Digest email delivery through the Resend HTTP API.
    """

    enabled: bool = True
    resend_api_key: str | None = None
    api_url: str = "https://api.resend.com/emails"
    from_address: str = "MerchPulse <alerts@merchpulse.app>"
    brand_name: str = "MerchPulse"
    app_url: str | None = None


@dataclass(frozen=True)
class CronSettings:
    """
    Shared secret for the cron trigger. ``None`` disables the endpoint.
    """

    secret: str | None = None


@dataclass(frozen=True)
class ServerSettings:
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "info"


@lru_cache(maxsize=1)
def get_scan_settings() -> ScanSettings:
    variant = _get_str_env("SCAN_SALES_RHYTHM_VARIANT", DEFAULT_SALES_RHYTHM_VARIANT).lower()
    if variant not in SALES_RHYTHM_VARIANTS:
        variant = DEFAULT_SALES_RHYTHM_VARIANT

    return ScanSettings(
        lookback_days=max(1, _get_int_env("SCAN_LOOKBACK_DAYS", 60)),
        sales_rhythm_variant=variant,
        sweep_interval_minutes=max(1, _get_int_env("SCAN_SWEEP_INTERVAL_MINUTES", 15)),
        scheduler_enabled=_get_bool_env("SCAN_SCHEDULER_ENABLED", True),
    )


@lru_cache(maxsize=1)
def get_external_http_settings() -> ExternalHTTPSettings:
    """
    Return shared connector HTTP settings from environment variables.
    """

    return ExternalHTTPSettings(
        timeout_seconds=max(1.0, _get_float_env("EXTERNAL_HTTP_TIMEOUT_SECONDS", 15.0)),
        max_retries=max(0, _get_int_env("EXTERNAL_HTTP_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(0.1, _get_float_env("EXTERNAL_HTTP_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("EXTERNAL_HTTP_BACKOFF_MULTIPLIER", 2.0)),
        rate_limit_per_second=max(0.1, _get_float_env("EXTERNAL_HTTP_RATE_LIMIT_PER_SECOND", 2.0)),
    )


@lru_cache(maxsize=1)
def get_shopify_settings() -> ShopifySettings:
    return ShopifySettings(
        api_version=_get_str_env("SHOPIFY_API_VERSION", "2025-01"),
        orders_page_size=min(250, max(1, _get_int_env("SHOPIFY_ORDERS_PAGE_SIZE", 250))),
        products_page_size=min(250, max(1, _get_int_env("SHOPIFY_PRODUCTS_PAGE_SIZE", 250))),
        max_pages=max(1, _get_int_env("SHOPIFY_MAX_PAGES", 8)),
    )


@lru_cache(maxsize=1)
def get_email_settings() -> EmailSettings:
    brand = _get_str_env("DIGEST_BRAND_NAME", "MerchPulse")
    return EmailSettings(
        enabled=_get_bool_env("DIGEST_EMAIL_ENABLED", True),
        resend_api_key=_get_optional_str_env("RESEND_API_KEY"),
        api_url=_get_str_env("RESEND_API_URL", "https://api.resend.com/emails"),
        from_address=_get_str_env("DIGEST_FROM_ADDRESS", f"{brand} <alerts@merchpulse.app>"),
        brand_name=brand,
        app_url=_get_optional_str_env("SHOPIFY_APP_URL"),
    )


@lru_cache(maxsize=1)
def get_cron_settings() -> CronSettings:
    return CronSettings(secret=_get_optional_str_env("CRON_SECRET"))


@lru_cache(maxsize=1)
def get_server_settings() -> ServerSettings:
    """Bind address for ``merchpulse-api`` (``API_HOST``, ``API_PORT``, ``LOG_LEVEL``)."""
    port = _get_int_env("API_PORT", 8000)
    return ServerSettings(
        host=_get_str_env("API_HOST", "0.0.0.0"),
        port=port if 0 < port < 65536 else 8000,
        log_level=_get_str_env("LOG_LEVEL", "info").lower(),
    )

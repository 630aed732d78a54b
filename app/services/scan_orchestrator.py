"""
app/services/scan_orchestrator.py

Scan orchestrator.

Wires fetch → context → detectors → normalizer → guard → store into a single
sequential run for one shop. No detection logic lives here; every layer
retains its own responsibility:

    fetch_payload        – upstream orders/products (Shopify connector)
    build_insight_context – shape tolerance, coercion, dedupe
    detectors            – pure (context, options) -> candidate | None
    normalize_candidate  – publishing contract gate
    IdempotencyGuard     – per-type suppression window
    ScanStore            – insights, scan runs, digest settings, price history

Failure contract
----------------
- Fetch failure            → error scan run written, raises ScanFetchError
- Insight upsert failure   → error scan run written, raises InsightPersistenceError
- Detector exception       → logged, recorded as skipped ``detector_error``
- Guard query failure      → fails open (insert allowed), logged
- Scan run write failure   → logged, never raised
- Digest stage failure     → logged, never raised
"""

from __future__ import annotations

import dataclasses
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from datetime import date, datetime, timedelta, timezone
from typing import Any

from app.config import EmailSettings, ScanSettings, get_email_settings, get_scan_settings
from app.domain.scan import (
    DigestMarker,
    ScanMode,
    ScanRunRecord,
    ScanStatus,
    ScanSummary,
    ShopCredentials,
    SkippedCandidate,
)
from app.logging_utils import elapsed_ms, log_event
from app.repositories.scan_store import ScanStore
from insights.base import BaseDetector
from insights.context import InsightContext, PriceSnapshot
from insights.context_builder import build_insight_context
from insights.digest import digest_subject, order_actionable, render_daily_email
from insights.guard import IdempotencyGuard, guard_hours_for, guard_reason
from insights.normalizer import REJECT_CONTRACT_INCOMPLETE, CanonicalInsight, normalize_candidate
from insights.price_volatility import PriceVolatilityOptions
from insights.registry import build_detectors
from insights.results import capture
from insights.scheduling import local_day_key, next_run_at

logger = logging.getLogger(__name__)

REJECT_DETECTOR_ERROR = "detector_error"

# (credentials, since) -> raw upstream payload
FetchPayload = Callable[[ShopCredentials, datetime], Mapping[str, Any]]
# (to, subject, body) -> provider message id
SendEmail = Callable[[str, str, str], Any]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ScanFetchError(RuntimeError):
    """
    Raised when the upstream payload cannot be fetched.

    An ``error`` scan run has been written (best-effort) before raising.
    """


class InsightPersistenceError(RuntimeError):
    """
    Raised when staged insights cannot be upserted.

    An ``error`` scan run has been written (best-effort) before raising.
    """


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ScanOrchestrator:
    """
    Runs one shop scan end to end.

    Parameters
    ----------
    store:
        Persistence collaborator.
    fetch_payload:
        Upstream data access; any exception aborts the scan.
    send_email:
        Digest delivery. ``None`` disables the digest stage.
    detectors:
        Ordered detector set. Defaults to :func:`insights.registry.build_detectors`
        with the configured sales-rhythm variant.
    """

    def __init__(
        self,
        *,
        store: ScanStore,
        fetch_payload: FetchPayload,
        send_email: SendEmail | None = None,
        detectors: Sequence[BaseDetector] | None = None,
        scan_settings: ScanSettings | None = None,
        email_settings: EmailSettings | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._fetch_payload = fetch_payload
        self._send_email = send_email
        self._scan_settings = scan_settings or get_scan_settings()
        self._email_settings = email_settings or get_email_settings()
        self._detectors = tuple(
            detectors
            if detectors is not None
            else build_detectors(self._scan_settings.sales_rhythm_variant)
        )
        self._clock = clock

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    def run(
        self,
        credentials: ShopCredentials,
        *,
        mode: ScanMode = ScanMode.MANUAL,
    ) -> ScanSummary:
        """
        Execute the scan for *credentials* and return its summary.

        Steps
        -----
        1. Load the previous scan run (for the digest marker and fallback tz).
        2. Fetch the upstream payload for the lookback window.
        3. Build the context, with price history loaded and recorded.
        4. Run every detector in registry order.
        5. Normalize and guard each candidate; stage the survivors.
        6. Upsert staged insights keyed on ``(shop_id, type)``.
        7. Upsert the ``ok`` scan run with the next local run time.
        8. In auto mode, send the daily digest at most once per local day;
           skipped when the previous run could not be read.

        Raises
        ------
        ScanFetchError
            Upstream fetch failed.
        InsightPersistenceError
            Insight upsert failed.
        """
        started = time.monotonic()
        now = self._clock()
        shop_id = credentials.shop_id
        log_event(
            logger,
            logging.INFO,
            "scan_started",
            shop_id=shop_id,
            shop_domain=credentials.shop_domain,
            mode=mode.value,
        )

        # Step 1
        loaded_previous = self._previous_summary(shop_id)
        previous = loaded_previous if loaded_previous is not None else {}
        fallback_tz = str(previous.get("timezone") or "UTC")

        # Step 2
        since = now - timedelta(days=self._scan_settings.lookback_days)
        try:
            payload = self._fetch_payload(credentials, since)
        except Exception as exc:
            self._fail(shop_id, mode, now, fallback_tz, previous, exc, started, stage="fetch")
            raise ScanFetchError(f"Upstream fetch failed for shop '{shop_id}': {exc}") from exc

        # Step 3
        context = self._build_context(shop_id, now, payload)
        summary = ScanSummary(
            mode=mode,
            timezone=context.shop_timezone,
            diag=_fetch_diagnostics(payload, context),
            digest=DigestMarker.from_summary(previous),
        )

        # Steps 4-5
        staged = self._evaluate(context, summary, now)

        # Step 6
        if staged:
            result = capture(self._store.persist_insights, staged)
            if not result.ok:
                self._fail(
                    shop_id,
                    mode,
                    now,
                    context.shop_timezone,
                    previous,
                    result.exception,
                    started,
                    stage="persist_insights",
                )
                raise InsightPersistenceError(
                    f"Failed to persist insights for shop '{shop_id}': {result.message}"
                ) from result.exception
        summary.inserted = len(staged)
        summary.keys = [row.type for row in staged]

        # Step 7
        self._write_scan_run(shop_id, now, summary)

        # Step 8
        if mode is ScanMode.AUTO:
            if loaded_previous is None:
                # The once-per-day check needs the stored marker.
                log_event(
                    logger,
                    logging.WARNING,
                    "digest_skipped",
                    shop_id=shop_id,
                    reason="previous_scan_run_unavailable",
                )
            else:
                self._maybe_send_digest(credentials, context, summary, now)

        log_event(
            logger,
            logging.INFO,
            "scan_completed",
            shop_id=shop_id,
            mode=mode.value,
            inserted=summary.inserted,
            keys=summary.keys,
            skipped=len(summary.skipped),
            duration_ms=elapsed_ms(started),
        )
        return summary

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _previous_summary(self, shop_id: str) -> dict[str, Any] | None:
        """Last stored summary, ``{}`` before the first scan, ``None`` if unreadable."""
        result = capture(self._store.get_scan_run, shop_id)
        if not result.ok:
            logger.warning(
                "Previous scan run unavailable shop_id=%s error=%s", shop_id, result.message
            )
            return None
        record = result.value
        return dict(record.last_scan_summary or {}) if record is not None else {}

    def _build_context(
        self,
        shop_id: str,
        now: datetime,
        payload: Mapping[str, Any],
    ) -> InsightContext:
        lookback = PriceVolatilityOptions().lookback_days
        loaded = capture(self._store.load_price_snapshots, shop_id, now - timedelta(days=lookback))
        history: list[PriceSnapshot] = list(loaded.value) if loaded.ok else []
        if not loaded.ok:
            logger.warning(
                "Price history unavailable shop_id=%s error=%s", shop_id, loaded.message
            )

        context = build_insight_context(shop_id, now, payload)

        recorded = capture(self._store.record_price_snapshots, shop_id, context.products, now)
        if not recorded.ok:
            logger.warning(
                "Price snapshot write failed shop_id=%s error=%s", shop_id, recorded.message
            )

        current = [PriceSnapshot(p.id, p.price, context.now) for p in context.products]
        return dataclasses.replace(
            context,
            price_snapshots=tuple(sorted(history + current, key=lambda s: s.captured_at)),
        )

    def _evaluate(
        self,
        context: InsightContext,
        summary: ScanSummary,
        now: datetime,
    ) -> list[CanonicalInsight]:
        guard = IdempotencyGuard(self._store.query_recent_insight)
        staged: list[CanonicalInsight] = []
        staged_types: set[str] = set()

        for detector in self._detectors:
            summary.evaluated.append(detector.type)
            outcome = capture(detector.evaluate, context)
            if not outcome.ok:
                logger.error(
                    "Detector raised shop_id=%s type=%s error=%s",
                    context.shop_id,
                    detector.type,
                    outcome.message,
                )
                self._skip(summary, context.shop_id, detector.type, REJECT_DETECTOR_ERROR)
                continue
            if outcome.value is None:
                continue

            insight = normalize_candidate(context.shop_id, outcome.value, now=now)
            if insight is None:
                self._skip(summary, context.shop_id, detector.type, REJECT_CONTRACT_INCOMPLETE)
                continue

            hours = guard_hours_for(insight.type)
            if insight.type in staged_types or guard.already_recent(
                context.shop_id, insight.type, hours, now=now
            ):
                self._skip(summary, context.shop_id, insight.type, guard_reason(hours))
                continue

            staged.append(insight)
            staged_types.add(insight.type)

        for insight_type in guard.failures:
            log_event(
                logger,
                logging.WARNING,
                "guard_query_failed",
                shop_id=context.shop_id,
                type=insight_type,
            )
        if guard.failures:
            summary.diag["guard_failures"] = list(guard.failures)
        return staged

    def _skip(self, summary: ScanSummary, shop_id: str, insight_type: str, reason: str) -> None:
        summary.skipped.append(SkippedCandidate(type=insight_type, reason=reason))
        log_event(
            logger,
            logging.INFO,
            "candidate_skipped",
            shop_id=shop_id,
            type=insight_type,
            reason=reason,
        )

    def _write_scan_run(self, shop_id: str, now: datetime, summary: ScanSummary) -> None:
        record = ScanRunRecord(
            shop_id=shop_id,
            last_scan_at=now,
            next_scan_at=next_run_at(
                summary.timezone, now, run_hour=self._scan_settings.run_hour_local
            ),
            last_scan_status=summary.status,
            last_scan_summary=summary.to_dict(),
        )
        result = capture(self._store.persist_scan_run, record)
        if not result.ok:
            log_event(
                logger,
                logging.ERROR,
                "scan_run_write_failed",
                shop_id=shop_id,
                status=summary.status.value,
                error=result.message,
            )

    def _fail(
        self,
        shop_id: str,
        mode: ScanMode,
        now: datetime,
        shop_timezone: str,
        previous: Mapping[str, Any],
        exc: BaseException | None,
        started: float,
        *,
        stage: str,
    ) -> None:
        message = f"{type(exc).__name__}: {exc}" if exc is not None else stage
        summary = ScanSummary(
            status=ScanStatus.ERROR,
            mode=mode,
            timezone=shop_timezone,
            error=message,
            digest=DigestMarker.from_summary(dict(previous)),
        )
        self._write_scan_run(shop_id, now, summary)
        log_event(
            logger,
            logging.ERROR,
            "scan_failed",
            shop_id=shop_id,
            mode=mode.value,
            stage=stage,
            error=message,
            duration_ms=elapsed_ms(started),
        )

    def _maybe_send_digest(
        self,
        credentials: ShopCredentials,
        context: InsightContext,
        summary: ScanSummary,
        now: datetime,
    ) -> None:
        result = capture(self._send_digest, credentials, context, summary, now)
        if not result.ok:
            log_event(
                logger,
                logging.WARNING,
                "digest_failed",
                shop_id=credentials.shop_id,
                error=result.message,
            )
            return
        if result.value is None:
            return

        summary.digest = result.value
        log_event(
            logger,
            logging.INFO,
            "digest_sent",
            shop_id=credentials.shop_id,
            day_key=result.value.day_key,
            count=result.value.count,
        )
        self._write_scan_run(credentials.shop_id, now, summary)

    def _send_digest(
        self,
        credentials: ShopCredentials,
        context: InsightContext,
        summary: ScanSummary,
        now: datetime,
    ) -> DigestMarker | None:
        """Return the new marker when an email was sent, ``None`` when skipped."""
        if self._send_email is None:
            return None

        settings = self._store.get_digest_settings(credentials.shop_id)
        if settings is None or not settings.wants_daily:
            return None

        day_key = local_day_key(context.shop_timezone, now)
        if summary.digest is not None and summary.digest.day_key == day_key:
            logger.info(
                "Digest already sent today shop_id=%s day_key=%s", credentials.shop_id, day_key
            )
            return None

        actionable = order_actionable(self._store.list_actionable_insights(credentials.shop_id))
        if not actionable:
            return None

        brand = self._email_settings.brand_name
        body = render_daily_email(
            credentials.shop_domain,
            actionable,
            today=date.fromisoformat(day_key),
            brand=brand,
            app_url=self._email_settings.app_url,
        )
        self._send_email(settings.email or "", digest_subject(len(actionable), brand), body)
        return DigestMarker(day_key=day_key, sent_at=now.isoformat(), count=len(actionable))


def _fetch_diagnostics(payload: Mapping[str, Any], context: InsightContext) -> dict[str, Any]:
    data = payload if isinstance(payload, Mapping) else {}
    return {
        "products_present": bool(data.get("products")),
        "orders_present": bool(data.get("orders")),
        "orders_count": len(context.orders),
        "products_count": len(context.products),
        "price_snapshots": len(context.price_snapshots),
    }

"""
app/connectors/base.py

Shared HTTP mechanics for outbound connectors (Shopify Admin, Resend).

- A minimum interval is kept between requests of one connector.
- 429/5xx responses, timeouts and connection errors are retried. The wait
  is the server's ``Retry-After`` when it sends one (Shopify does on 429),
  otherwise exponential backoff.
- Anything else, or exhausted retries, raises :class:`ConnectorRequestError`
  carrying the last HTTP status.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

from app.config import ExternalHTTPSettings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
MAX_RETRY_AFTER_SECONDS = 30.0


class ConnectorRequestError(RuntimeError):
    """
    Raised when a connector cannot complete a request after retries.

    ``status_code`` is the last HTTP status seen, when there was one.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def retry_after_seconds(response: requests.Response | None) -> float | None:
    """Seconds from a numeric ``Retry-After`` header, capped; ``None`` if absent."""
    if response is None:
        return None
    raw = (response.headers or {}).get("Retry-After")
    try:
        seconds = float(raw)
    except (TypeError, ValueError):
        return None
    return min(max(seconds, 0.0), MAX_RETRY_AFTER_SECONDS)


class BaseConnector:
    """
    Holds one ``requests.Session`` and the retry policy for a named source.
    """

    def __init__(
        self,
        *,
        source: str,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        self.source = source
        self._session = session or requests.Session()
        self._http = http_settings
        self._min_interval = (
            1.0 / http_settings.rate_limit_per_second if http_settings.rate_limit_per_second > 0 else 0.0
        )
        self._last_request_at = 0.0

    def _request_json(
        self,
        *,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_body: Any = None,
    ) -> Any:
        response = self._send_with_retries(
            method=method, url=url, params=params, headers=headers, json_body=json_body
        )
        try:
            return response.json()
        except ValueError as exc:
            raise ConnectorRequestError(
                f"{self.source}: response was not valid JSON.",
                status_code=response.status_code,
            ) from exc

    def _send_with_retries(self, *, method: str, url: str, **request_kwargs: Any) -> requests.Response:
        attempts = self._http.max_retries + 1
        last_error: Exception | None = None
        last_status: int | None = None

        for attempt in range(attempts):
            response: requests.Response | None = None
            try:
                response = self._send_once(method, url, **request_kwargs)
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = exc
            else:
                last_status = response.status_code
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    return self._raise_for_status(response, url)
                last_error = requests.HTTPError(
                    f"Retryable HTTP status code: {response.status_code}", response=response
                )

            if attempt + 1 >= attempts:
                break
            wait = retry_after_seconds(response)
            if wait is None:
                wait = self._http.backoff_initial_seconds * (self._http.backoff_multiplier**attempt)
            logger.warning(
                "Connector request retry source=%s attempt=%s/%s status=%s wait_seconds=%.2f",
                self.source,
                attempt + 1,
                self._http.max_retries,
                last_status,
                wait,
            )
            time.sleep(wait)

        logger.error(
            "Connector request exhausted retries source=%s url=%s error=%s",
            self.source,
            url,
            last_error,
        )
        raise ConnectorRequestError(
            f"{self.source}: request failed after retries.",
            status_code=last_status,
        ) from last_error

    def _send_once(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None,
        headers: dict[str, str] | None,
        json_body: Any,
    ) -> requests.Response:
        self._wait_for_slot()
        return self._session.request(
            method=method,
            url=url,
            params=params,
            headers=headers,
            json=json_body,
            timeout=self._http.timeout_seconds,
        )

    def _raise_for_status(self, response: requests.Response, url: str) -> requests.Response:
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            logger.error(
                "Connector request failed source=%s status=%s url=%s",
                self.source,
                response.status_code,
                url,
            )
            raise ConnectorRequestError(
                f"{self.source}: request rejected with status {response.status_code}.",
                status_code=response.status_code,
            ) from exc
        return response

    def _wait_for_slot(self) -> None:
        if self._min_interval <= 0:
            return
        remaining = self._min_interval - (time.monotonic() - self._last_request_at)
        if remaining > 0:
            time.sleep(remaining)
        self._last_request_at = time.monotonic()

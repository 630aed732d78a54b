"""
tests/test_connectors.py

Pytest unit tests for the outbound HTTP connectors.

``requests.Session`` is replaced with a ``MagicMock`` whose ``request``
returns canned responses; ``time.sleep`` is patched out so retries are
instant.

Coverage
--------
- ShopifyConnector: request shape, cursor pagination, page cap,
  auth failures (HTTP and GraphQL), other GraphQL errors
- BaseConnector: retry on 5xx, Retry-After, exhaustion, non-retryable status
- ResendMailer: payload, message id, not configured
- normalize_shop_domain
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import requests

from app.config import EmailSettings, ExternalHTTPSettings, ShopifySettings
from app.connectors.base import ConnectorRequestError, retry_after_seconds
from app.connectors.resend_mailer import EmailNotConfiguredError, ResendMailer
from app.connectors.shopify_connector import (
    ShopifyAuthError,
    ShopifyConnector,
    normalize_shop_domain,
)
from app.domain.scan import ShopCredentials

CREDENTIALS = ShopCredentials(shop_id="1", shop_domain="Demo.myshopify.com", access_token="shpat_x")
SINCE = datetime(2026, 8, 15, 18, 0, tzinfo=timezone.utc)
HTTP = ExternalHTTPSettings(max_retries=2, backoff_initial_seconds=0.1, rate_limit_per_second=100.0)


def _response(status: int = 200, body=None, headers=None) -> MagicMock:
    response = MagicMock(spec=requests.Response)
    response.status_code = status
    response.headers = headers or {}
    response.json.return_value = body if body is not None else {}
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(
            f"{status} error", response=response
        )
    return response


def _page(root: str, ids, *, cursor=None, has_next=False) -> MagicMock:
    return _response(
        body={
            "data": {
                root: {
                    "pageInfo": {"hasNextPage": has_next, "endCursor": cursor},
                    "edges": [{"node": {"id": i}} for i in ids],
                }
            }
        }
    )


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch) -> list:
    slept = []
    monkeypatch.setattr("app.connectors.base.time.sleep", slept.append)
    return slept


@pytest.fixture
def session() -> MagicMock:
    return MagicMock(spec=requests.Session)


def _connector(session, **settings) -> ShopifyConnector:
    return ShopifyConnector(
        settings=ShopifySettings(**settings), http_settings=HTTP, session=session
    )


class TestShopifyConnector:
    def test_fetches_and_paginates(self, session) -> None:
        session.request.side_effect = [
            _response(body={"data": {"shop": {"ianaTimezone": "Europe/Paris"}}}),
            _page("orders", ["o1", "o2"], cursor="c1", has_next=True),
            _page("orders", ["o3"]),
            _page("products", ["p1"]),
        ]
        payload = _connector(session).fetch_shop_payload(CREDENTIALS, SINCE)

        assert payload["shop"] == {"ianaTimezone": "Europe/Paris"}
        assert [e["node"]["id"] for e in payload["orders"]["edges"]] == ["o1", "o2", "o3"]
        assert [e["node"]["id"] for e in payload["products"]["edges"]] == ["p1"]

        first_orders_call = session.request.call_args_list[1].kwargs
        assert first_orders_call["method"] == "POST"
        assert first_orders_call["url"] == (
            "https://demo.myshopify.com/admin/api/2025-01/graphql.json"
        )
        assert first_orders_call["headers"]["X-Shopify-Access-Token"] == "shpat_x"
        variables = first_orders_call["json"]["variables"]
        assert variables["query"] == "created_at:>=2026-08-15T18:00:00Z"
        assert variables["after"] is None
        second_orders_call = session.request.call_args_list[2].kwargs
        assert second_orders_call["json"]["variables"]["after"] == "c1"

    def test_page_cap(self, session) -> None:
        session.request.side_effect = [
            _response(body={"data": {"shop": {}}}),
            _page("orders", ["o1"], cursor="c1", has_next=True),
            _page("orders", ["o2"], cursor="c2", has_next=True),
            _page("products", []),
        ]
        payload = _connector(session, max_pages=2).fetch_shop_payload(CREDENTIALS, SINCE)
        assert len(payload["orders"]["edges"]) == 2
        assert session.request.call_count == 4

    @pytest.mark.parametrize("status", [401, 403])
    def test_http_auth_failure(self, session, status) -> None:
        session.request.return_value = _response(status)
        with pytest.raises(ShopifyAuthError) as excinfo:
            _connector(session).fetch_shop_payload(CREDENTIALS, SINCE)
        assert excinfo.value.status_code == status
        assert session.request.call_count == 1

    def test_graphql_access_denied(self, session) -> None:
        session.request.return_value = _response(
            body={"errors": [{"message": "Access denied for orders field."}]}
        )
        with pytest.raises(ShopifyAuthError):
            _connector(session).fetch_shop_payload(CREDENTIALS, SINCE)

    def test_other_graphql_errors(self, session) -> None:
        session.request.return_value = _response(body={"errors": [{"message": "Throttled"}]})
        with pytest.raises(ConnectorRequestError) as excinfo:
            _connector(session).fetch_shop_payload(CREDENTIALS, SINCE)
        assert not isinstance(excinfo.value, ShopifyAuthError)


class TestRetries:
    def test_retries_then_succeeds(self, session, no_sleep) -> None:
        session.request.side_effect = [
            _response(503),
            _response(body={"data": {"shop": {"ianaTimezone": "UTC"}}}),
            _page("orders", []),
            _page("products", []),
        ]
        payload = _connector(session).fetch_shop_payload(CREDENTIALS, SINCE)
        assert payload["shop"] == {"ianaTimezone": "UTC"}
        assert 0.1 in no_sleep

    def test_retry_after_header_is_honoured(self, session, no_sleep) -> None:
        session.request.side_effect = [
            _response(429, headers={"Retry-After": "2.0"}),
            _response(body={"data": {"shop": {}}}),
            _page("orders", []),
            _page("products", []),
        ]
        _connector(session).fetch_shop_payload(CREDENTIALS, SINCE)
        assert 2.0 in no_sleep

    @pytest.mark.parametrize(
        "headers, expected",
        [
            ({"Retry-After": "5"}, 5.0),
            ({"Retry-After": "600"}, 30.0),
            ({"Retry-After": "soon"}, None),
            ({}, None),
        ],
    )
    def test_retry_after_parsing(self, headers, expected) -> None:
        assert retry_after_seconds(_response(429, headers=headers)) == expected

    def test_exhausted_retries(self, session) -> None:
        session.request.return_value = _response(502)
        with pytest.raises(ConnectorRequestError) as excinfo:
            _connector(session).fetch_shop_payload(CREDENTIALS, SINCE)
        assert excinfo.value.status_code == 502
        assert session.request.call_count == HTTP.max_retries + 1

    def test_connection_errors_are_retried(self, session) -> None:
        session.request.side_effect = requests.ConnectionError("reset")
        with pytest.raises(ConnectorRequestError):
            _connector(session).fetch_shop_payload(CREDENTIALS, SINCE)
        assert session.request.call_count == HTTP.max_retries + 1

    def test_non_retryable_status(self, session) -> None:
        session.request.return_value = _response(422)
        with pytest.raises(ConnectorRequestError) as excinfo:
            _connector(session).fetch_shop_payload(CREDENTIALS, SINCE)
        assert excinfo.value.status_code == 422
        assert session.request.call_count == 1


class TestResendMailer:
    def _mailer(self, session, **overrides) -> ResendMailer:
        settings = {"resend_api_key": "re_key", "from_address": "Acme <a@acme.test>"}
        settings.update(overrides)
        return ResendMailer(settings=EmailSettings(**settings), http_settings=HTTP, session=session)

    def test_sends_plain_text(self, session) -> None:
        session.request.return_value = _response(body={"id": "msg_123"})
        message_id = self._mailer(session).send_digest_email("o@shop.test", "Subject", "Body")

        assert message_id == "msg_123"
        call = session.request.call_args.kwargs
        assert call["url"] == "https://api.resend.com/emails"
        assert call["headers"]["Authorization"] == "Bearer re_key"
        assert call["json"] == {
            "from": "Acme <a@acme.test>",
            "to": ["o@shop.test"],
            "subject": "Subject",
            "text": "Body",
        }

    @pytest.mark.parametrize("overrides", [{"resend_api_key": None}, {"enabled": False}])
    def test_not_configured(self, session, overrides) -> None:
        mailer = self._mailer(session, **overrides)
        assert mailer.configured is False
        with pytest.raises(EmailNotConfiguredError):
            mailer.send_digest_email("o@shop.test", "S", "B")
        session.request.assert_not_called()


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("demo.myshopify.com", "demo.myshopify.com"),
        (" HTTPS://Demo.myshopify.com/admin/apps ", "demo.myshopify.com"),
        ("http://shop.example", "shop.example"),
    ],
)
def test_normalize_shop_domain(raw, expected) -> None:
    assert normalize_shop_domain(raw) == expected

"""
app/connectors/shopify_connector.py

Shopify Admin GraphQL connector.

Fetches the raw scan payload for one shop: its IANA timezone, orders created
since a cutoff (with line items), and the product catalog. Orders and products
are paged with cursors, bounded by ``ShopifySettings.max_pages`` per
collection. The payload keeps Shopify's ``{"edges": [{"node": ...}]}`` shape;
:mod:`insights.context_builder` takes it from there.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any

import requests

from app.config import ExternalHTTPSettings, ShopifySettings
from app.connectors.base import BaseConnector, ConnectorRequestError
from app.domain.scan import ShopCredentials

logger = logging.getLogger(__name__)

SHOP_QUERY = """
query ShopTimezone {
  shop {
    ianaTimezone
  }
}
"""

ORDERS_QUERY = """
query ScanOrders($first: Int!, $after: String, $query: String!) {
  orders(first: $first, after: $after, query: $query, sortKey: CREATED_AT) {
    pageInfo { hasNextPage endCursor }
    edges {
      node {
        id
        createdAt
        cancelledAt
        totalPriceSet { shopMoney { amount } }
        lineItems(first: 50) {
          edges {
            node {
              quantity
              product { id }
              originalTotalSet { shopMoney { amount } }
            }
          }
        }
      }
    }
  }
}
"""

PRODUCTS_QUERY = """
query ScanProducts($first: Int!, $after: String) {
  products(first: $first, after: $after) {
    pageInfo { hasNextPage endCursor }
    edges {
      node {
        id
        title
        status
        totalInventory
        priceRangeV2 { minVariantPrice { amount } }
      }
    }
  }
}
"""

_AUTH_ERROR_MARKERS = (
    "invalid api key or access token",
    "unrecognized login",
    "access denied",
    "not approved to access",
    "unauthorized",
)


class ShopifyAuthError(ConnectorRequestError):
    """
    Raised when Shopify rejects the access token or the app's scopes.
    """


def normalize_shop_domain(shop: str) -> str:
    """Lower-case host only: ``https://Foo.myshopify.com/admin`` -> ``foo.myshopify.com``."""
    domain = shop.strip().lower()
    domain = re.sub(r"^https?://", "", domain)
    return domain.split("/", 1)[0]


class ShopifyConnector(BaseConnector):
    def __init__(
        self,
        *,
        settings: ShopifySettings,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source="shopify", http_settings=http_settings, session=session)
        self._settings = settings

    def fetch_shop_payload(self, credentials: ShopCredentials, since: datetime) -> dict[str, Any]:
        """
        Return ``{"shop": ..., "orders": {"edges": [...]}, "products": {"edges": [...]}}``.

        Raises
        ------
        ShopifyAuthError
            On 401/403 or access-denied GraphQL errors.
        ConnectorRequestError
            On any other transport failure or GraphQL error.
        """
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        since_iso = since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

        shop_data = self._graphql(credentials, SHOP_QUERY, {})
        orders = self._paginate(
            credentials,
            ORDERS_QUERY,
            "orders",
            {"first": self._settings.orders_page_size, "query": f"created_at:>={since_iso}"},
        )
        products = self._paginate(
            credentials,
            PRODUCTS_QUERY,
            "products",
            {"first": self._settings.products_page_size},
        )

        logger.info(
            "Fetched Shopify payload shop=%s orders=%d products=%d",
            credentials.shop_domain,
            len(orders),
            len(products),
        )
        return {
            "shop": shop_data.get("shop") or {},
            "orders": {"edges": orders},
            "products": {"edges": products},
        }

    def _paginate(
        self,
        credentials: ShopCredentials,
        query: str,
        root: str,
        variables: dict[str, Any],
    ) -> list[dict[str, Any]]:
        edges: list[dict[str, Any]] = []
        cursor: str | None = None

        for page in range(self._settings.max_pages):
            data = self._graphql(credentials, query, {**variables, "after": cursor})
            connection = data.get(root) or {}
            edges.extend(connection.get("edges") or [])

            page_info = connection.get("pageInfo") or {}
            cursor = page_info.get("endCursor")
            if not page_info.get("hasNextPage") or not cursor:
                break
        else:
            logger.warning(
                "Shopify pagination truncated shop=%s collection=%s pages=%d",
                credentials.shop_domain,
                root,
                self._settings.max_pages,
            )

        return edges

    def _graphql(
        self,
        credentials: ShopCredentials,
        query: str,
        variables: dict[str, Any],
    ) -> dict[str, Any]:
        domain = normalize_shop_domain(credentials.shop_domain)
        url = f"https://{domain}/admin/api/{self._settings.api_version}/graphql.json"
        try:
            body = self._request_json(
                method="POST",
                url=url,
                headers={
                    "Content-Type": "application/json",
                    "X-Shopify-Access-Token": credentials.access_token,
                },
                json_body={"query": query, "variables": variables},
            )
        except ConnectorRequestError as exc:
            if exc.status_code in {401, 403}:
                raise ShopifyAuthError(
                    f"shopify: access token rejected for {domain}.",
                    status_code=exc.status_code,
                ) from exc
            raise

        if not isinstance(body, dict):
            raise ConnectorRequestError("shopify: unexpected GraphQL response shape.")

        errors = body.get("errors")
        if errors:
            text = str(errors)
            if any(marker in text.lower() for marker in _AUTH_ERROR_MARKERS):
                raise ShopifyAuthError(f"shopify: access denied: {text[:500]}", status_code=403)
            raise ConnectorRequestError(f"shopify: GraphQL errors: {text[:500]}")

        return body.get("data") or {}

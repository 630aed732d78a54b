"""
tests/test_context_builder.py

Pytest unit tests for insights.context_builder.

Coverage
--------
- GraphQL edges, node lists and plain list payload shapes
- Defensive coercion of money and quantity fields
- historical_revenue summed across all orders
- Timezone defaulting (missing and unknown zones)
- Malformed records are skipped, duplicates deduplicated (first wins)
- Cancelled orders are flagged, never dropped
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from insights.context_builder import (
    build_insight_context,
    parse_datetime,
    resolve_timezone,
    to_float,
    to_int,
)

NOW = datetime(2026, 10, 14, 18, 0, tzinfo=timezone.utc)


def _graphql_payload() -> dict:
    return {
        "shop": {"ianaTimezone": "America/New_York"},
        "orders": {
            "edges": [
                {
                    "node": {
                        "id": "gid://shopify/Order/1",
                        "createdAt": "2026-10-13T15:00:00Z",
                        "cancelledAt": None,
                        "totalPriceSet": {"shopMoney": {"amount": "45.50"}},
                        "lineItems": {
                            "edges": [
                                {
                                    "node": {
                                        "quantity": 2,
                                        "product": {"id": "gid://shopify/Product/10"},
                                        "originalTotalSet": {"shopMoney": {"amount": "30.00"}},
                                    }
                                },
                                {
                                    "node": {
                                        "quantity": 1,
                                        "product": {"id": "gid://shopify/Product/11"},
                                        "originalTotalSet": {"shopMoney": {"amount": "15.50"}},
                                    }
                                },
                            ]
                        },
                    }
                },
                {
                    "node": {
                        "id": "gid://shopify/Order/2",
                        "createdAt": "2026-10-12T09:00:00Z",
                        "cancelledAt": "2026-10-12T10:00:00Z",
                        "totalPriceSet": {"shopMoney": {"amount": "15.00"}},
                        "lineItems": {
                            "edges": [
                                {
                                    "node": {
                                        "quantity": 1,
                                        "product": {"id": "gid://shopify/Product/10"},
                                        "originalTotalSet": {"shopMoney": {"amount": "15.00"}},
                                    }
                                }
                            ]
                        },
                    }
                },
            ]
        },
        "products": {
            "edges": [
                {
                    "node": {
                        "id": "gid://shopify/Product/10",
                        "title": "Blue Mug",
                        "status": "ACTIVE",
                        "totalInventory": 4,
                        "priceRangeV2": {"minVariantPrice": {"amount": "15.00"}},
                    }
                },
                {
                    "node": {
                        "id": "gid://shopify/Product/11",
                        "title": "Red Mug",
                        "status": "DRAFT",
                        "totalInventory": -2,
                        "priceRangeV2": {"minVariantPrice": {"amount": "15.50"}},
                    }
                },
            ]
        },
    }


class TestGraphQLShape:
    def test_orders_and_products_are_parsed(self) -> None:
        ctx = build_insight_context("shop-1", NOW, _graphql_payload())
        assert [o.id for o in ctx.orders] == ["gid://shopify/Order/1", "gid://shopify/Order/2"]
        assert [p.title for p in ctx.products] == ["Blue Mug", "Red Mug"]
        assert ctx.shop_timezone == "America/New_York"
        assert ctx.has_line_items

    def test_money_is_read_from_shop_money(self) -> None:
        ctx = build_insight_context("shop-1", NOW, _graphql_payload())
        assert ctx.orders[0].total_price == pytest.approx(45.5)
        assert ctx.orders[0].line_items[0].revenue == pytest.approx(30.0)

    def test_cancelled_orders_are_flagged_not_dropped(self) -> None:
        ctx = build_insight_context("shop-1", NOW, _graphql_payload())
        assert ctx.orders[1].is_cancelled
        assert len(ctx.orders) == 2

    def test_historical_revenue_sums_all_orders(self) -> None:
        ctx = build_insight_context("shop-1", NOW, _graphql_payload())
        by_id = ctx.product_by_id()
        assert by_id["gid://shopify/Product/10"].historical_revenue == pytest.approx(45.0)
        assert by_id["gid://shopify/Product/11"].historical_revenue == pytest.approx(15.5)

    def test_negative_inventory_is_tolerated(self) -> None:
        ctx = build_insight_context("shop-1", NOW, _graphql_payload())
        red = ctx.product_by_id()["gid://shopify/Product/11"]
        assert red.inventory_quantity == -2
        assert not red.is_active


class TestAlternateShapes:
    def test_plain_lists_with_snake_case(self) -> None:
        payload = {
            "orders": [
                {
                    "id": 1,
                    "created_at": "2026-10-14T08:00:00+00:00",
                    "total_price": "12.5",
                    "line_items": [{"product_id": 7, "quantity": 3, "price": "2.5"}],
                }
            ],
            "products": [{"id": 7, "title": "Sticker", "price": "2.5", "inventory_quantity": "9"}],
        }
        ctx = build_insight_context("shop-1", NOW, payload)
        assert ctx.orders[0].line_items[0].product_id == "7"
        assert ctx.orders[0].line_items[0].revenue == pytest.approx(7.5)
        assert ctx.products[0].inventory_quantity == 9
        assert ctx.products[0].historical_revenue == pytest.approx(7.5)

    def test_nodes_shape(self) -> None:
        payload = {
            "orders": {"nodes": [{"id": "a", "createdAt": "2026-10-14T08:00:00Z"}]},
            "products": {"nodes": [{"id": "p", "title": "Thing"}]},
        }
        ctx = build_insight_context("shop-1", NOW, payload)
        assert len(ctx.orders) == 1
        assert len(ctx.products) == 1
        assert not ctx.has_line_items

    def test_none_payload_builds_empty_context(self) -> None:
        ctx = build_insight_context("shop-1", NOW, None)
        assert ctx.orders == ()
        assert ctx.products == ()
        assert ctx.shop_timezone == "UTC"


class TestMalformedRecords:
    def test_bad_records_are_skipped(self) -> None:
        payload = {
            "orders": [
                {"id": "ok", "createdAt": "2026-10-14T08:00:00Z"},
                {"id": "no-date"},
                "not-a-mapping",
                {"createdAt": "2026-10-14T08:00:00Z"},
            ],
            "products": [{"id": "p1"}, {"title": "no id"}, None],
        }
        ctx = build_insight_context("shop-1", NOW, payload)
        assert [o.id for o in ctx.orders] == ["ok"]
        assert [p.id for p in ctx.products] == ["p1"]
        assert ctx.products[0].title == "Untitled product"

    def test_duplicates_keep_first_occurrence(self) -> None:
        payload = {
            "orders": [],
            "products": [
                {"id": "p1", "title": "First", "price": 5},
                {"id": "p1", "title": "Second", "price": 9},
            ],
        }
        ctx = build_insight_context("shop-1", NOW, payload)
        assert len(ctx.products) == 1
        assert ctx.products[0].title == "First"

    def test_non_numeric_fields_become_zero(self) -> None:
        payload = {
            "orders": [
                {
                    "id": "o",
                    "createdAt": "2026-10-14T08:00:00Z",
                    "totalPrice": "n/a",
                    "lineItems": [{"productId": "p", "quantity": "many", "revenue": None}],
                }
            ],
            "products": [{"id": "p", "price": "free", "totalInventory": "lots"}],
        }
        ctx = build_insight_context("shop-1", NOW, payload)
        assert ctx.orders[0].total_price == 0.0
        assert ctx.orders[0].line_items[0].quantity == 0
        assert ctx.products[0].price == 0.0
        assert ctx.products[0].inventory_quantity == 0


class TestTimezone:
    def test_missing_timezone_defaults_to_utc(self) -> None:
        assert resolve_timezone({"shop": {}}) == "UTC"

    def test_unknown_timezone_defaults_to_utc(self) -> None:
        assert resolve_timezone({"shop": {"ianaTimezone": "Mars/Olympus_Mons"}}) == "UTC"

    def test_top_level_timezone_alias(self) -> None:
        assert resolve_timezone({"shop_timezone": "Asia/Kolkata"}) == "Asia/Kolkata"


class TestCoercionHelpers:
    @pytest.mark.parametrize(
        "raw, expected",
        [("3.5", 3.5), (None, 0.0), ("abc", 0.0), (float("nan"), 0.0), (True, 0.0), (7, 7.0)],
    )
    def test_to_float(self, raw, expected) -> None:
        assert to_float(raw) == expected

    def test_to_int_truncates(self) -> None:
        assert to_int("4.9") == 4

    def test_parse_datetime_zulu_and_naive(self) -> None:
        assert parse_datetime("2026-10-14T08:00:00Z") == datetime(
            2026, 10, 14, 8, tzinfo=timezone.utc
        )
        assert parse_datetime(datetime(2026, 1, 1)).tzinfo is not None
        assert parse_datetime("yesterday") is None

"""
Tests for the Shopify price store client.

Uses httpx.MockTransport so requests never leave the process.
"""

import json

import httpx
import pytest

from discount_scheduler.core.errors import UpstreamError
from discount_scheduler.services.price_store import ShopifyPriceStore

pytestmark = pytest.mark.asyncio

BASE = "https://test-shop.myshopify.com/admin/api/2024-01"


def _store(handler) -> ShopifyPriceStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ShopifyPriceStore(
        client=client,
        shop_domain="test-shop.myshopify.com",
        access_token="shpat_test",
    )


class TestReadPrice:
    """Tests for read_price."""

    async def test_reads_price_and_compare_at(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            assert str(request.url) == f"{BASE}/variants/1001.json"
            assert request.headers["X-Shopify-Access-Token"] == "shpat_test"
            return httpx.Response(
                200, json={"variant": {"id": 1001, "price": "80.00", "compare_at_price": "100.00"}}
            )

        result = await _store(handler).read_price("1001")

        assert result.price == "80.00"
        assert result.compare_at_price == "100.00"

    async def test_null_compare_at(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, json={"variant": {"price": "80.00", "compare_at_price": None}}
            )

        result = await _store(handler).read_price("1001")

        assert result.compare_at_price is None

    async def test_http_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"errors": "Not Found"})

        with pytest.raises(UpstreamError) as exc_info:
            await _store(handler).read_price("1001")

        assert "404" in str(exc_info.value)
        assert exc_info.value.variant_id == "1001"

    async def test_transport_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UpstreamError):
            await _store(handler).read_price("1001")

    async def test_missing_price_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"variant": {}})

        with pytest.raises(UpstreamError):
            await _store(handler).read_price("1001")

    async def test_no_retry(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503)

        with pytest.raises(UpstreamError):
            await _store(handler).read_price("1001")

        assert len(calls) == 1


class TestWritePrice:
    """Tests for write_price."""

    async def test_puts_price_and_compare_at(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"variant": {}})

        await _store(handler).write_price("1001", "70.00", "100.00")

        assert seen["method"] == "PUT"
        assert seen["body"] == {
            "variant": {"id": "1001", "price": "70.00", "compare_at_price": "100.00"}
        }

    async def test_sends_explicit_null_compare_at(self):
        """A None compare-at must be sent, so Shopify clears the field."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"variant": {}})

        await _store(handler).write_price("1001", "80.00", None)

        assert "compare_at_price" in seen["body"]["variant"]
        assert seen["body"]["variant"]["compare_at_price"] is None

    async def test_rejected_write_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, json={"errors": {"price": ["is invalid"]}})

        with pytest.raises(UpstreamError):
            await _store(handler).write_price("1001", "-1", None)


class TestFetchVariantDetails:
    """Tests for fetch_variant_details."""

    async def test_parses_nodes(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == f"{BASE}/graphql.json"
            body = json.loads(request.content)
            assert body["variables"]["ids"] == ["gid://shopify/ProductVariant/1001"]
            return httpx.Response(
                200,
                json={
                    "data": {
                        "nodes": [
                            {
                                "id": "gid://shopify/ProductVariant/1001",
                                "title": "Large",
                                "price": "80.00",
                                "image": None,
                                "product": {
                                    "title": "Wool Sweater",
                                    "featuredImage": {"url": "https://cdn.example.com/s.jpg"},
                                },
                            },
                            None,
                        ]
                    }
                },
            )

        details = await _store(handler).fetch_variant_details(["1001", "1001"])

        assert set(details) == {"1001"}
        assert details["1001"].title == "Large"
        assert details["1001"].product_title == "Wool Sweater"
        assert details["1001"].image_url == "https://cdn.example.com/s.jpg"
        assert details["1001"].price == "80.00"

    async def test_chunks_large_requests(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(len(json.loads(request.content)["variables"]["ids"]))
            return httpx.Response(200, json={"data": {"nodes": []}})

        await _store(handler).fetch_variant_details([str(i) for i in range(250)])

        assert sorted(calls) == [50, 100, 100]

    async def test_graphql_errors_raise(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"errors": [{"message": "Throttled"}]})

        with pytest.raises(UpstreamError):
            await _store(handler).fetch_variant_details(["1001"])

    async def test_empty_input_makes_no_calls(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        assert await _store(handler).fetch_variant_details([]) == {}

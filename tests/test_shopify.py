"""
Tests for the Shopify client and catalog helpers, over a mock transport.
"""

import json

import httpx
import pytest

from app.shopify import (
    ShopifyAuthError,
    ShopifyClient,
    ShopifyClientError,
    find_variant_by_sku,
    find_variants_by_skus,
    normalize_domain,
    update_product_tags,
)
from app.shopify.queries import build_sku_search


def make_client(handler, token="shpat_test"):
    return ShopifyClient("teststore", token, transport=httpx.MockTransport(handler))


def variant_node(variant_id, sku, price="10.00", product_id="gid://shopify/Product/1"):
    return {
        "node": {
            "id": variant_id,
            "sku": sku,
            "price": price,
            "product": {"id": product_id, "title": "Board", "tags": ["a"]},
        }
    }


@pytest.fixture(autouse=True)
def no_retry_delay(monkeypatch):
    monkeypatch.setattr(ShopifyClient, "BASE_RETRY_DELAY", 0)


class TestNormalizeDomain:
    """Tests for normalize_domain function."""

    def test_bare_handle(self):
        assert normalize_domain("MyStore") == "mystore.myshopify.com"

    def test_url_with_scheme_and_slash(self):
        assert normalize_domain("https://mystore.myshopify.com/") == "mystore.myshopify.com"

    def test_custom_domain_is_kept(self):
        assert normalize_domain("shop.example.com") == "shop.example.com"

    def test_empty(self):
        assert normalize_domain("") == ""


class TestExecute:
    """Tests for ShopifyClient.execute."""

    @pytest.mark.asyncio
    async def test_returns_data_and_sends_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"data": {"shop": {"name": "Test"}}})

        client = make_client(handler)
        data = await client.execute("query { shop { name } }", {"a": 1})
        await client.close()

        assert data == {"shop": {"name": "Test"}}
        assert str(seen[0].url) == "https://teststore.myshopify.com/admin/api/2025-01/graphql.json"
        assert seen[0].headers["X-Shopify-Access-Token"] == "shpat_test"
        assert json.loads(seen[0].content) == {"query": "query { shop { name } }", "variables": {"a": 1}}

    @pytest.mark.asyncio
    async def test_context_manager_closes_http_client(self):
        handler = lambda request: httpx.Response(200, json={"data": {"shop": {"name": "Test"}}})

        async with make_client(handler) as client:
            data = await client.execute("query { shop { name } }")
            assert client._http is not None

        assert data == {"shop": {"name": "Test"}}
        assert client._http is None

    @pytest.mark.asyncio
    async def test_missing_token(self):
        client = make_client(lambda request: httpx.Response(200, json={"data": {}}), token="")

        with pytest.raises(ShopifyAuthError):
            await client.execute("query { shop { name } }")

    @pytest.mark.asyncio
    async def test_unauthorized_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401, json={"errors": "Invalid API key"})

        client = make_client(handler)
        with pytest.raises(ShopifyAuthError):
            await client.execute("query { shop { name } }")

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self):
        responses = [
            httpx.Response(429, headers={"Retry-After": "0"}),
            httpx.Response(200, json={"data": {"ok": True}}),
        ]

        client = make_client(lambda request: responses.pop(0))

        assert await client.execute("query { shop { name } }") == {"ok": True}

    @pytest.mark.asyncio
    async def test_graphql_throttle_is_retried(self):
        responses = [
            httpx.Response(200, json={"errors": [{"message": "Throttled"}]}),
            httpx.Response(200, json={"data": {"ok": True}}),
        ]

        client = make_client(lambda request: responses.pop(0))

        assert await client.execute("query { shop { name } }") == {"ok": True}

    @pytest.mark.asyncio
    async def test_graphql_errors_raise(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"errors": [{"message": "Field 'x' doesn't exist"}]})

        client = make_client(handler)
        with pytest.raises(ShopifyClientError, match="doesn't exist"):
            await client.execute("query { x }")

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_server_error(self):
        client = make_client(lambda request: httpx.Response(500, text="oops"))

        with pytest.raises(ShopifyClientError, match="HTTP 500"):
            await client.execute("query { shop { name } }")

    @pytest.mark.asyncio
    async def test_connection_errors_give_up_after_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(ShopifyClientError, match="Request error"):
            await client.execute("query { shop { name } }")

        assert len(calls) == ShopifyClient.MAX_RETRIES


class TestCatalog:
    """Tests for variant lookup and tag updates."""

    def test_sku_search_quotes_values(self):
        assert build_sku_search('A"1') == 'sku:"A\\"1"'
        assert build_sku_search(["A", "B"]) == 'sku:"A" OR sku:"B"'

    @pytest.mark.asyncio
    async def test_exact_sku_match_is_preferred(self):
        def handler(request):
            return httpx.Response(200, json={"data": {"productVariants": {"edges": [
                variant_node("gid://shopify/ProductVariant/1", "SK1-XL"),
                variant_node("gid://shopify/ProductVariant/2", "SK1", price="19.99"),
            ]}}})

        variant = await find_variant_by_sku(make_client(handler), "SK1")

        assert variant.variant_id == "gid://shopify/ProductVariant/2"
        assert str(variant.price) == "19.99"
        assert variant.tags == ["a"]

    @pytest.mark.asyncio
    async def test_first_hit_without_exact_match(self):
        def handler(request):
            return httpx.Response(200, json={"data": {"productVariants": {"edges": [
                variant_node("gid://shopify/ProductVariant/1", "sk1"),
            ]}}})

        variant = await find_variant_by_sku(make_client(handler), "SK1")

        assert variant.variant_id == "gid://shopify/ProductVariant/1"

    @pytest.mark.asyncio
    async def test_no_hits(self):
        def handler(request):
            return httpx.Response(200, json={"data": {"productVariants": {"edges": []}}})

        assert await find_variant_by_sku(make_client(handler), "SK1") is None

    @pytest.mark.asyncio
    async def test_batch_lookup_keeps_exact_matches_only(self):
        def handler(request):
            return httpx.Response(200, json={"data": {"productVariants": {"edges": [
                variant_node("gid://shopify/ProductVariant/1", "A"),
                variant_node("gid://shopify/ProductVariant/2", "A-2"),
            ]}}})

        found = await find_variants_by_skus(make_client(handler), ["A", "B", "A"])

        assert list(found) == ["A"]

    @pytest.mark.asyncio
    async def test_tag_update_returns_user_errors(self):
        def handler(request):
            return httpx.Response(200, json={"data": {"productUpdate": {
                "product": None,
                "userErrors": [{"field": ["tags"], "message": "Tag is too long"}],
            }}})

        errors = await update_product_tags(make_client(handler), "gid://shopify/Product/1", ["x" * 300])

        assert errors == ["Tag is too long"]

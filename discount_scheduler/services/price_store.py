"""
Price store client for the Shopify Admin API.

Reads and writes a variant's price and compare-at price. Calls are not
retried: a failed call raises UpstreamError immediately and the caller
decides whether to log-and-continue (tick) or report (emergency stop).
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from discount_scheduler.core.errors import UpstreamError
from discount_scheduler.core.logging import get_logger

logger = get_logger(__name__)

# GraphQL nodes() accepts up to 250 ids; stay well under it
DETAILS_CHUNK_SIZE = 100

VARIANT_DETAILS_QUERY = """
query VariantDetails($ids: [ID!]!) {
  nodes(ids: $ids) {
    ... on ProductVariant {
      id
      title
      price
      compareAtPrice
      image { url }
      product { title featuredImage { url } }
    }
  }
}
"""


@dataclass(frozen=True)
class VariantPrice:
    """Price fields of a variant as the catalog reports them."""

    price: str
    compare_at_price: str | None = None


@dataclass(frozen=True)
class VariantDetails:
    """Catalog metadata used to enrich job listings."""

    variant_id: str
    title: str | None = None
    product_title: str | None = None
    image_url: str | None = None
    price: str | None = None


class BasePriceStore(ABC):
    """Abstract base class for price store backends."""

    provider_name: str = "unknown"

    @abstractmethod
    async def read_price(self, variant_id: str) -> VariantPrice:
        """
        Read the current price of a variant.

        Raises:
            UpstreamError: If the catalog call fails
        """
        pass

    @abstractmethod
    async def write_price(
        self,
        variant_id: str,
        price: str,
        compare_at_price: str | None,
    ) -> None:
        """
        Write price and compare-at price. A None compare-at clears the field.

        Raises:
            UpstreamError: If the catalog call fails
        """
        pass

    async def fetch_variant_details(self, variant_ids: list[str]) -> dict[str, VariantDetails]:
        """Fetch display metadata keyed by variant id. Backends may return nothing."""
        return {}


def _variant_gid(variant_id: str) -> str:
    if variant_id.startswith("gid://"):
        return variant_id
    return f"gid://shopify/ProductVariant/{variant_id}"


def _numeric_id(gid: str) -> str:
    return gid.rsplit("/", 1)[-1]


class ShopifyPriceStore(BasePriceStore):
    """Price store backed by the Shopify Admin REST and GraphQL APIs."""

    provider_name = "shopify"

    def __init__(
        self,
        client: httpx.AsyncClient,
        shop_domain: str,
        access_token: str,
        api_version: str = "2024-01",
    ) -> None:
        """
        Initialize the Shopify price store.

        Args:
            client: Shared HTTP client; its lifetime is owned by the caller
            shop_domain: Store domain, e.g. "my-store.myshopify.com"
            access_token: Admin API access token (shpat_...)
            api_version: Admin API version segment
        """
        self.client = client
        self.shop_domain = shop_domain
        self.access_token = access_token
        self.api_version = api_version

    @property
    def _base_url(self) -> str:
        return f"https://{self.shop_domain}/admin/api/{self.api_version}"

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "X-Shopify-Access-Token": self.access_token,
            "Content-Type": "application/json",
        }

    def _variant_url(self, variant_id: str) -> str:
        return f"{self._base_url}/variants/{variant_id}.json"

    async def _request(
        self,
        method: str,
        url: str,
        action: str,
        variant_id: str | None = None,
        json: dict | None = None,
    ) -> dict:
        try:
            response = await self.client.request(method, url, headers=self._headers, json=json)
        except httpx.HTTPError as e:
            logger.bind(variant_id=variant_id, action=action, error=str(e)).warning(
                "price_store_transport_error"
            )
            raise UpstreamError(f"{action} failed: {e}", variant_id) from e

        if not response.is_success:
            logger.bind(
                variant_id=variant_id,
                action=action,
                status=response.status_code,
            ).warning("price_store_http_error")
            raise UpstreamError(
                f"{action} failed: HTTP {response.status_code}",
                variant_id,
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"{action} failed: invalid JSON", variant_id) from e

    async def read_price(self, variant_id: str) -> VariantPrice:
        data = await self._request("GET", self._variant_url(variant_id), "Fetch", variant_id)

        variant = data.get("variant") or {}
        price = variant.get("price")
        if price is None:
            raise UpstreamError("Fetch failed: no price in response", variant_id)

        compare_at = variant.get("compare_at_price")
        return VariantPrice(
            price=str(price),
            compare_at_price=str(compare_at) if compare_at is not None else None,
        )

    async def write_price(
        self,
        variant_id: str,
        price: str,
        compare_at_price: str | None,
    ) -> None:
        # compare_at_price is always sent so that None clears the field
        payload = {
            "variant": {
                "id": variant_id,
                "price": price,
                "compare_at_price": compare_at_price,
            }
        }
        await self._request("PUT", self._variant_url(variant_id), "Update", variant_id, json=payload)
        logger.bind(variant_id=variant_id, price=price, compare_at_price=compare_at_price).debug(
            "price_store_price_written"
        )

    async def _fetch_details_chunk(self, variant_ids: list[str]) -> dict[str, VariantDetails]:
        payload = {
            "query": VARIANT_DETAILS_QUERY,
            "variables": {"ids": [_variant_gid(v) for v in variant_ids]},
        }
        data = await self._request("POST", f"{self._base_url}/graphql.json", "Details", json=payload)

        if data.get("errors"):
            raise UpstreamError(f"Details failed: {data['errors']}")

        details: dict[str, VariantDetails] = {}
        for node in (data.get("data") or {}).get("nodes") or []:
            if not node or "id" not in node:
                continue
            product = node.get("product") or {}
            image = node.get("image") or product.get("featuredImage") or {}
            variant_id = _numeric_id(node["id"])
            details[variant_id] = VariantDetails(
                variant_id=variant_id,
                title=node.get("title"),
                product_title=product.get("title"),
                image_url=image.get("url"),
                price=node.get("price"),
            )
        return details

    async def fetch_variant_details(self, variant_ids: list[str]) -> dict[str, VariantDetails]:
        """Fetch metadata for all variants, one GraphQL call per chunk, all in parallel."""
        unique_ids = list(dict.fromkeys(variant_ids))
        if not unique_ids:
            return {}

        chunks = [
            unique_ids[i : i + DETAILS_CHUNK_SIZE]
            for i in range(0, len(unique_ids), DETAILS_CHUNK_SIZE)
        ]
        results = await asyncio.gather(*(self._fetch_details_chunk(c) for c in chunks))

        merged: dict[str, VariantDetails] = {}
        for result in results:
            merged.update(result)
        return merged


def build_price_store(client: httpx.AsyncClient, settings) -> ShopifyPriceStore:
    """Construct the configured price store around a caller-owned HTTP client."""
    return ShopifyPriceStore(
        client=client,
        shop_domain=settings.shop_domain,
        access_token=settings.shopify_token,
        api_version=settings.shopify_api_version,
    )

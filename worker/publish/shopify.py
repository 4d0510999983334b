from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any
from urllib.parse import parse_qs, urlparse

import httpx

from worker.config import WorkerSettings
from worker.errors import DuplicateVariantError, StorefrontError, TooManyVariantsError
from worker.models import CatalogItem, ItemOption, ItemVariant, TranslatedItem
from worker.payloads import ShopifyProductPayload

logger = logging.getLogger(__name__)

PRODUCT_SET_VARIANT_FIELDS = {"compare_at_price": "compareAtPrice", "barcode": "barcode"}
TOO_MANY_VARIANTS_MARKERS = ("too many variants", "exceeds the maximum", "maximum number of variants", "100 variants")
DUPLICATE_VARIANT_MARKERS = ("already exists", "duplicate", "must be unique")

PRODUCT_SET_MUTATION = """
mutation productSet($input: ProductSetInput!, $synchronous: Boolean!) {
  productSet(synchronous: $synchronous, input: $input) {
    product { id handle }
    userErrors { field message code }
  }
}
"""


def product_gid(item_id: str) -> str:
    return f"gid://shopify/Product/{item_id}"


def variant_gid(variant_id: str) -> str:
    return f"gid://shopify/ProductVariant/{variant_id}"


def classify_error(message: str, status_code: int | None = None, details: object | None = None) -> StorefrontError:
    lowered = message.lower()
    if "variant" in lowered and any(marker in lowered for marker in TOO_MANY_VARIANTS_MARKERS):
        return TooManyVariantsError(message, status_code=status_code, details=details)
    if any(marker in lowered for marker in DUPLICATE_VARIANT_MARKERS):
        return DuplicateVariantError(message, status_code=status_code, details=details)
    return StorefrontError(message, status_code=status_code, details=details)


class ShopifyClient:
    def __init__(self, settings: WorkerSettings, client: httpx.AsyncClient | None = None) -> None:
        self.page_size = settings.shopify_page_size
        self.base_url = f"{settings.shopify_store_url.rstrip('/')}/admin/api/{settings.shopify_api_version}"
        self.client = client or httpx.AsyncClient(
            timeout=settings.shopify_timeout_seconds,
            headers={
                "X-Shopify-Access-Token": settings.shopify_access_token,
                "Content-Type": "application/json",
            },
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def get_item(self, item_id: str) -> CatalogItem:
        response = await self._request("GET", f"/products/{item_id}.json")
        return ShopifyProductPayload.model_validate(response.json()["product"]).to_item()

    async def list_items_page(self, cursor: str | None = None) -> tuple[list[CatalogItem], str | None]:
        params: dict[str, Any] = {"limit": self.page_size}
        if cursor:
            params["page_info"] = cursor
        response = await self._request("GET", "/products.json", params=params)
        items = [ShopifyProductPayload.model_validate(product).to_item() for product in response.json().get("products", [])]
        return items, self._next_cursor(response)

    async def iter_pages(self) -> AsyncIterator[list[CatalogItem]]:
        cursor: str | None = None
        while True:
            items, cursor = await self.list_items_page(cursor)
            yield items
            if not cursor:
                return

    async def update_item(self, translated: TranslatedItem, include_variants: bool = True) -> dict[str, str]:
        product: dict[str, Any] = {
            "id": int(translated.item_id) if translated.item_id.isdigit() else translated.item_id,
            "title": translated.title,
            "body_html": translated.description,
            "product_type": translated.product_type,
            "tags": ", ".join(translated.tags),
            "metafields_global_title_tag": translated.seo_title,
            "metafields_global_description_tag": translated.seo_description,
        }
        if translated.slug:
            product["handle"] = translated.slug
        if translated.metafields:
            product["metafields"] = translated.metafields
        if include_variants and translated.options:
            product["options"] = [{"name": option.name, "values": option.values} for option in translated.options]
            product["variants"] = [self._variant_payload(variant) for variant in translated.variants]

        response = await self._request("PUT", f"/products/{translated.item_id}.json", json={"product": product})
        payload = response.json().get("product") or {}
        refs = {"shopify_product_id": str(payload.get("id") or translated.item_id)}
        if payload.get("handle"):
            refs["shopify_handle"] = str(payload["handle"])
        return refs

    async def set_product(self, translated: TranslatedItem) -> dict[str, str]:
        """Full write through GraphQL productSet, which accepts larger variant sets than REST."""
        product_input: dict[str, Any] = {
            "id": product_gid(translated.item_id),
            "title": translated.title,
            "descriptionHtml": translated.description,
            "productType": translated.product_type,
            "tags": translated.tags,
            "seo": {"title": translated.seo_title, "description": translated.seo_description},
            "productOptions": [
                {"name": option.name, "position": index + 1, "values": [{"name": value} for value in option.values]}
                for index, option in enumerate(translated.options)
            ],
            "variants": [self._variant_set_input(variant, translated.options) for variant in translated.variants],
        }
        if translated.slug:
            product_input["handle"] = translated.slug
        if translated.metafields:
            product_input["metafields"] = translated.metafields

        data = await self._graphql(PRODUCT_SET_MUTATION, {"input": product_input, "synchronous": True})
        result = data.get("productSet") or {}
        errors = result.get("userErrors") or []
        if errors:
            message = "; ".join(str(error.get("message", "")) for error in errors)
            raise classify_error(message, details=errors)
        product = result.get("product") or {}
        refs = {"shopify_product_id": translated.item_id}
        if product.get("handle"):
            refs["shopify_handle"] = str(product["handle"])
        return refs

    async def set_metafields(self, item_id: str, metafields: list[dict[str, str]]) -> None:
        product = {"id": int(item_id) if item_id.isdigit() else item_id, "metafields": metafields}
        await self._request("PUT", f"/products/{item_id}.json", json={"product": product})

    async def _graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        response = await self._request("POST", "/graphql.json", json={"query": query, "variables": variables})
        payload = response.json()
        if payload.get("errors"):
            message = "; ".join(str(error.get("message", error)) for error in payload["errors"])
            raise classify_error(message, status_code=response.status_code, details=payload["errors"])
        return payload.get("data") or {}

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise StorefrontError(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 400:
            details: object
            try:
                details = response.json().get("errors", response.text)
            except ValueError:
                details = response.text
            raise classify_error(
                f"{method} {path} returned {response.status_code}: {details}",
                status_code=response.status_code,
                details=details,
            )
        return response

    @staticmethod
    def _variant_payload(variant: ItemVariant) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": int(variant.id) if variant.id.isdigit() else variant.id}
        for index, value in enumerate(variant.options):
            payload[f"option{index + 1}"] = value
        if variant.price is not None:
            payload["price"] = variant.price
        if variant.sku is not None:
            payload["sku"] = variant.sku
        for key, value in variant.extra.items():
            payload.setdefault(key, value)
        return payload

    @staticmethod
    def _variant_set_input(variant: ItemVariant, options: list[ItemOption]) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": variant_gid(variant.id),
            "optionValues": [
                {"optionName": option.name, "name": value}
                for option, value in zip(options, variant.options)
                if value is not None
            ],
        }
        if variant.price is not None:
            payload["price"] = variant.price
        if variant.sku is not None:
            payload["inventoryItem"] = {"sku": variant.sku}
        # productSet only takes the camelCase subset of the REST passthrough fields.
        for rest_key, graphql_key in PRODUCT_SET_VARIANT_FIELDS.items():
            value = variant.extra.get(rest_key)
            if value is not None:
                payload[graphql_key] = value
        return payload

    @staticmethod
    def _next_cursor(response: httpx.Response) -> str | None:
        link = response.links.get("next")
        if not link or not link.get("url"):
            return None
        values = parse_qs(urlparse(link["url"]).query).get("page_info")
        return values[0] if values else None

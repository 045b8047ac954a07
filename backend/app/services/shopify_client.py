"""
Shopify Admin API client (REST + GraphQL).
Handles authentication, throttle retries and error mapping.
"""
import asyncio
from typing import Any, Optional

import httpx

from app.core.config import settings
from app.core.errors import UpstreamError
from app.core.logging import get_logger

logger = get_logger(__name__)


class ShopifyAdminClient:
    """
    Async client for one store's Admin API.

    Features:
    - REST metafield and product endpoints
    - GraphQL endpoint for listings and metafield definitions
    - Fixed-delay retry on HTTP 429, only for calls that opt in
    - Non-success responses raised as UpstreamError
    """

    BASE_URL = "https://{domain}/admin/api/{version}"

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        http_client: Optional[httpx.AsyncClient] = None,
        *,
        api_version: Optional[str] = None,
        rate_limit_delay: Optional[float] = None,
        rate_limit_retries: Optional[int] = None,
    ) -> None:
        self.shop_domain = shop_domain
        self.access_token = access_token
        self.base_url = self.BASE_URL.format(
            domain=shop_domain,
            version=api_version or settings.shopify_api_version,
        )
        self.rate_limit_delay = (
            settings.shopify_rate_limit_delay if rate_limit_delay is None else rate_limit_delay
        )
        self.rate_limit_retries = (
            settings.shopify_rate_limit_retries if rate_limit_retries is None else rate_limit_retries
        )
        self._http = http_client or httpx.AsyncClient(timeout=settings.shopify_http_timeout)

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self.access_token,
        }

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
        retry_on_throttle: bool = False,
    ) -> httpx.Response:
        """
        Send one Admin API request.

        With retry_on_throttle, a 429 waits rate_limit_delay seconds and is
        retried up to rate_limit_retries times before giving up.
        """
        url = f"{self.base_url}/{path}"
        retries_left = self.rate_limit_retries if retry_on_throttle else 0

        while True:
            if self._http.is_closed:
                logger.error("Shopify client already closed", shop=self.shop_domain, path=path)
                raise UpstreamError("Shopify client is closed")

            try:
                response = await self._http.request(
                    method,
                    url,
                    json=json,
                    params=params,
                    headers=self.headers,
                )
            except httpx.RequestError as e:
                logger.error(
                    "Shopify request failed",
                    shop=self.shop_domain,
                    method=method,
                    path=path,
                    error=str(e),
                )
                raise UpstreamError(f"Request failed: {e}") from e

            if response.status_code == 429 and retries_left > 0:
                retries_left -= 1
                logger.warning(
                    "Shopify rate limit reached, retrying",
                    shop=self.shop_domain,
                    path=path,
                    retries_left=retries_left,
                )
                await asyncio.sleep(self.rate_limit_delay)
                continue

            if response.is_error:
                logger.error(
                    "Shopify returned an error status",
                    shop=self.shop_domain,
                    method=method,
                    path=path,
                    status=response.status_code,
                    body=response.text[:300],
                )
                raise UpstreamError(
                    f"HTTP error: {response.status_code}",
                    upstream_status=response.status_code,
                )

            return response

    async def graphql(
        self,
        query: str,
        variables: Optional[dict[str, Any]] = None,
        *,
        retry_on_throttle: bool = False,
    ) -> dict[str, Any]:
        """
        Execute a GraphQL query against the Admin API.

        Returns:
            The `data` member of the response

        Raises:
            UpstreamError: On HTTP errors or a GraphQL `errors` payload
        """
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        response = await self._request(
            "POST",
            "graphql.json",
            json=payload,
            retry_on_throttle=retry_on_throttle,
        )
        data = response.json()

        if data.get("errors"):
            logger.error(
                "Shopify GraphQL errors",
                errors=data["errors"],
                shop=self.shop_domain,
            )
            raise UpstreamError(data["errors"])

        return data.get("data") or {}

    # ------------------------------------------------------------------
    # REST
    # ------------------------------------------------------------------

    async def get_shop(self) -> dict[str, Any]:
        """Get the shop resource (id, domain, myshopify_domain, ...)."""
        response = await self._request("GET", "shop.json")
        return response.json().get("shop") or {}

    async def get_product_metafields(
        self,
        product_id: str,
        namespace: str,
    ) -> list[dict[str, Any]]:
        """List a product's metafields within one namespace."""
        response = await self._request(
            "GET",
            f"products/{product_id}/metafields.json",
            params={"namespace": namespace},
        )
        metafields = response.json().get("metafields") or []
        # Older API versions ignore the namespace filter
        return [m for m in metafields if m.get("namespace") == namespace]

    async def create_product_metafield(
        self,
        product_id: str,
        namespace: str,
        key: str,
        value: str,
        type_: str,
    ) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"products/{product_id}/metafields.json",
            json={
                "metafield": {
                    "namespace": namespace,
                    "key": key,
                    "value": value,
                    "type": type_,
                }
            },
        )
        return response.json().get("metafield") or {}

    async def update_product_metafield(
        self,
        product_id: str,
        metafield_id: int | str,
        value: str,
        type_: str,
    ) -> dict[str, Any]:
        response = await self._request(
            "PUT",
            f"products/{product_id}/metafields/{metafield_id}.json",
            json={
                "metafield": {
                    "id": metafield_id,
                    "value": value,
                    "type": type_,
                }
            },
        )
        return response.json().get("metafield") or {}

    async def delete_product_metafield(
        self,
        product_id: str,
        metafield_id: int | str,
    ) -> None:
        await self._request(
            "DELETE",
            f"products/{product_id}/metafields/{metafield_id}.json",
        )

    async def update_product_inventory(self, product_id: str, quantity: int) -> None:
        """Set the same inventory quantity on the product's variants in one call."""
        await self._request(
            "PUT",
            f"products/{product_id}.json",
            json={
                "product": {
                    "id": int(product_id),
                    "variants": [{"inventory_quantity": quantity}],
                }
            },
        )

    # ------------------------------------------------------------------
    # GraphQL
    # ------------------------------------------------------------------

    async def get_products(
        self,
        namespace: str,
        first: int = 50,
        after: Optional[str] = None,
    ) -> dict[str, Any]:
        """Fetch products with pagination and their sync metafields."""
        query = """
        query GetProducts($first: Int!, $after: String, $namespace: String!) {
            products(first: $first, after: $after) {
                edges {
                    cursor
                    node {
                        id
                        title
                        handle
                        status
                        totalInventory
                        isSyncMaster: metafield(namespace: $namespace, key: "is_sync_master") {
                            value
                        }
                        linkedMaster: metafield(namespace: $namespace, key: "linked_master") {
                            value
                        }
                    }
                }
                pageInfo {
                    hasNextPage
                    endCursor
                }
            }
        }
        """
        return await self.graphql(
            query,
            {"first": first, "after": after, "namespace": namespace},
        )

    async def get_metafield_definitions(self, namespace: str) -> list[dict[str, Any]]:
        """List product metafield definitions in a namespace."""
        query = """
        query GetDefinitions($namespace: String!) {
            metafieldDefinitions(first: 50, ownerType: PRODUCT, namespace: $namespace) {
                edges {
                    node {
                        id
                        namespace
                        key
                    }
                }
            }
        }
        """
        data = await self.graphql(
            query,
            {"namespace": namespace},
            retry_on_throttle=True,
        )
        edges = (data.get("metafieldDefinitions") or {}).get("edges") or []
        return [edge["node"] for edge in edges]

    async def create_metafield_definition(
        self,
        definition: dict[str, Any],
    ) -> tuple[Optional[str], list[dict[str, Any]]]:
        """
        Create a metafield definition.

        Returns (created definition id or None, userErrors).
        """
        mutation = """
        mutation CreateDefinition($definition: MetafieldDefinitionInput!) {
            metafieldDefinitionCreate(definition: $definition) {
                createdDefinition {
                    id
                }
                userErrors {
                    field
                    message
                    code
                }
            }
        }
        """
        data = await self.graphql(
            mutation,
            {"definition": definition},
            retry_on_throttle=True,
        )
        block = data.get("metafieldDefinitionCreate") or {}
        created = block.get("createdDefinition") or {}
        return created.get("id"), block.get("userErrors") or []

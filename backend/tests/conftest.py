"""
Shared test fixtures.

Settings are read from the environment at import time, so the test
environment is set up before anything from `app` is imported.
"""
import os

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENCRYPTION_KEY"] = "test-encryption-key-with-at-least-32-chars"
os.environ["SHOPIFY_API_KEY"] = "test-api-key"
os.environ["SHOPIFY_API_SECRET"] = "test-api-secret"
os.environ["SHOPIFY_APP_URL"] = "https://sync.example.com"
os.environ["SHOPIFY_APP_HANDLE"] = "stock-sync"
os.environ["SHOPIFY_RATE_LIMIT_DELAY"] = "0"
os.environ["LOG_LEVEL"] = "WARNING"

import itertools  # noqa: E402
from collections.abc import AsyncGenerator, Generator  # noqa: E402
from typing import Any, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from app.core.config import settings  # noqa: E402
from app.core.database import async_session_factory, close_db, init_db  # noqa: E402
from app.core.errors import UpstreamError  # noqa: E402
from app.core.security import compute_oauth_hmac, compute_webhook_hmac  # noqa: E402
from app.main import app as fastapi_app, lifespan  # noqa: E402
from app.services.client_pool import ShopifyClientPool  # noqa: E402

SHOP_DOMAIN = "a.myshopify.com"
SHOP_ID = "1001"


class FakeShopifyClient:
    """
    In-memory stand-in for ShopifyAdminClient.

    Metafields are kept per product; every call is appended to `calls`
    so tests can assert on order and count.
    """

    def __init__(self, shop_domain: str = SHOP_DOMAIN) -> None:
        self.shop_domain = shop_domain
        self.metafields: dict[str, list[dict[str, Any]]] = {}
        self.definitions: list[dict[str, Any]] = []
        self.products: list[dict[str, Any]] = []
        self.calls: list[tuple] = []
        self.fail_inventory_for: set[str] = set()
        self.fail_writes = False
        self.closed = False
        self._ids = itertools.count(1)

    # Test helpers
    def set_metafield(self, product_id: str, namespace: str, key: str, value: Any, type_: str) -> dict:
        metafield = {
            "id": next(self._ids),
            "namespace": namespace,
            "key": key,
            "value": value,
            "type": type_,
        }
        self.metafields.setdefault(str(product_id), []).append(metafield)
        return metafield

    def value_of(self, product_id: str, key: str) -> Optional[Any]:
        for metafield in self.metafields.get(str(product_id), []):
            if metafield["key"] == key:
                return metafield["value"]
        return None

    @property
    def inventory_updates(self) -> list[tuple[str, int]]:
        return [(c[1], c[2]) for c in self.calls if c[0] == "update_product_inventory"]

    @property
    def write_calls(self) -> list[tuple]:
        writes = ("create_product_metafield", "update_product_metafield", "delete_product_metafield")
        return [c for c in self.calls if c[0] in writes]

    # ShopifyAdminClient surface
    async def get_product_metafields(self, product_id: str, namespace: str) -> list[dict]:
        self.calls.append(("get_product_metafields", str(product_id)))
        return [dict(m) for m in self.metafields.get(str(product_id), []) if m["namespace"] == namespace]

    async def create_product_metafield(self, product_id, namespace, key, value, type_) -> dict:
        self.calls.append(("create_product_metafield", str(product_id), key, value))
        if self.fail_writes:
            raise UpstreamError("HTTP error: 500", upstream_status=500)
        return self.set_metafield(product_id, namespace, key, value, type_)

    async def update_product_metafield(self, product_id, metafield_id, value, type_) -> dict:
        self.calls.append(("update_product_metafield", str(product_id), metafield_id, value))
        if self.fail_writes:
            raise UpstreamError("HTTP error: 500", upstream_status=500)
        for metafield in self.metafields.get(str(product_id), []):
            if metafield["id"] == metafield_id:
                metafield["value"] = value
                return metafield
        raise UpstreamError("HTTP error: 404", upstream_status=404)

    async def delete_product_metafield(self, product_id, metafield_id) -> None:
        self.calls.append(("delete_product_metafield", str(product_id), metafield_id))
        self.metafields[str(product_id)] = [
            m for m in self.metafields.get(str(product_id), []) if m["id"] != metafield_id
        ]

    async def update_product_inventory(self, product_id: str, quantity: int) -> None:
        self.calls.append(("update_product_inventory", str(product_id), quantity))
        if str(product_id) in self.fail_inventory_for:
            raise UpstreamError("HTTP error: 422", upstream_status=422)

    async def get_products(self, namespace: str, first: int = 50, after: Optional[str] = None) -> dict:
        self.calls.append(("get_products", first, after))
        return {
            "products": {
                "edges": [{"cursor": f"c{i}", "node": node} for i, node in enumerate(self.products)],
                "pageInfo": {"hasNextPage": False, "endCursor": None},
            }
        }

    async def get_metafield_definitions(self, namespace: str) -> list[dict]:
        self.calls.append(("get_metafield_definitions", namespace))
        return [d for d in self.definitions if d["namespace"] == namespace]

    async def create_metafield_definition(self, definition: dict) -> tuple[Optional[str], list]:
        self.calls.append(("create_metafield_definition", definition["key"]))
        node = {
            "id": f"gid://shopify/MetafieldDefinition/{next(self._ids)}",
            "namespace": definition["namespace"],
            "key": definition["key"],
        }
        self.definitions.append(node)
        return node["id"], []

    async def aclose(self) -> None:
        self.closed = True


def sign_webhook(body: bytes) -> str:
    return compute_webhook_hmac(body, settings.shopify_api_secret)


def sign_oauth_params(params: dict[str, str]) -> dict[str, str]:
    return {**params, "hmac": compute_oauth_hmac(params, settings.shopify_api_secret)}


@pytest.fixture
def fake_shopify() -> FakeShopifyClient:
    return FakeShopifyClient()


@pytest.fixture
def sample_store_data() -> dict:
    return {
        "domain": SHOP_DOMAIN,
        "shopId": SHOP_ID,
        "accessToken": "shpat_test_123",
        "scopes": "read_products,write_products",
    }


@pytest.fixture
def shop_headers() -> dict:
    return {"X-Shop-Domain": SHOP_DOMAIN}


@pytest.fixture
def client(fake_shopify: FakeShopifyClient) -> Generator[TestClient, None, None]:
    """TestClient with the lifespan running and Shopify replaced by the fake."""
    with TestClient(fastapi_app) as test_client:
        fastapi_app.state.client_pool = ShopifyClientPool(
            max_size=10,
            client_factory=lambda domain, token: fake_shopify,
        )
        yield test_client


@pytest.fixture
def registered_client(client: TestClient, sample_store_data: dict) -> TestClient:
    """Client for which the sample store is already registered."""
    response = client.post("/api/stores", json=sample_store_data)
    assert response.status_code == 201
    return client


@pytest.fixture
async def async_client(fake_shopify: FakeShopifyClient) -> AsyncGenerator[AsyncClient, None]:
    async with lifespan(fastapi_app):
        fastapi_app.state.client_pool = ShopifyClientPool(
            max_size=10,
            client_factory=lambda domain, token: fake_shopify,
        )
        transport = ASGITransport(app=fastapi_app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    await init_db()
    async with async_session_factory() as session:
        yield session
    await close_db()

"""
Tests for product sync endpoints.
"""
import json

import pytest
from fastapi.testclient import TestClient

from app.services.namespacing import product_gid
from tests.conftest import SHOP_ID, FakeShopifyClient

NAMESPACE = f"sync_logic_{SHOP_ID}"


def link(client: TestClient, headers: dict, master: str, children: list[str]):
    client.post(f"/api/products/{master}/sync-master", headers=headers)
    return client.put(
        f"/api/products/{master}/linked-products",
        json={"childProductIds": children},
        headers=headers,
    )


class TestStoreResolution:
    """Product routes must resolve a registered store."""

    def test_missing_shop_domain(self, registered_client: TestClient):
        response = registered_client.post("/api/products/101/sync-master")

        assert response.status_code == 400
        assert response.json()["type"] == "ValidationError"

    def test_unknown_store(self, registered_client: TestClient):
        response = registered_client.post(
            "/api/products/101/sync-master",
            headers={"X-Shop-Domain": "unknown.myshopify.com"},
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Unauthorized: Access token missing"

    def test_shop_query_parameter(self, registered_client: TestClient, fake_shopify: FakeShopifyClient):
        response = registered_client.post("/api/products/101/sync-master?shop=a.myshopify.com")

        assert response.status_code == 200
        assert fake_shopify.value_of("101", "is_sync_master") == "true"


class TestSyncMaster:
    """Tests for POST /api/products/{id}/sync-master."""

    def test_set_sync_master(self, registered_client: TestClient, shop_headers: dict, fake_shopify):
        response = registered_client.post("/api/products/101/sync-master", headers=shop_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["productId"] == "101"
        assert data["changed"] is True
        assert fake_shopify.metafields["101"][0]["namespace"] == NAMESPACE

    def test_set_sync_master_twice(self, registered_client: TestClient, shop_headers: dict):
        registered_client.post("/api/products/101/sync-master", headers=shop_headers)
        response = registered_client.post("/api/products/101/sync-master", headers=shop_headers)

        assert response.status_code == 200
        assert response.json()["changed"] is False
        assert "already" in response.json()["message"]

    def test_child_cannot_become_master(self, registered_client: TestClient, shop_headers: dict):
        link(registered_client, shop_headers, "101", ["201"])

        response = registered_client.post("/api/products/201/sync-master", headers=shop_headers)

        assert response.status_code == 400
        assert response.json()["type"] == "InvalidStateError"

    def test_invalid_product_id(self, registered_client: TestClient, shop_headers: dict):
        response = registered_client.post("/api/products/abc/sync-master", headers=shop_headers)

        assert response.status_code == 400

    def test_upstream_failure_is_masked(self, registered_client: TestClient, shop_headers: dict, fake_shopify):
        fake_shopify.fail_writes = True

        response = registered_client.post("/api/products/101/sync-master", headers=shop_headers)

        assert response.status_code == 502
        assert response.json()["detail"] == "Upstream commerce platform error"


class TestLinkedProducts:
    """Tests for reading and replacing linked products."""

    def test_link_children(self, registered_client: TestClient, shop_headers: dict, fake_shopify):
        response = link(registered_client, shop_headers, "101", ["201", "202"])

        assert response.status_code == 200
        data = response.json()
        assert data["masterProductId"] == "101"
        assert data["childProductIds"] == ["201", "202"]
        assert data["version"] == 1
        assert json.loads(fake_shopify.value_of("101", "linked_products")) == [
            product_gid("201"),
            product_gid("202"),
        ]

    def test_relink_bumps_version(self, registered_client: TestClient, shop_headers: dict):
        link(registered_client, shop_headers, "101", ["201", "202"])
        response = registered_client.put(
            "/api/products/101/linked-products",
            json={"childProductIds": ["202"]},
            headers=shop_headers,
        )

        assert response.status_code == 200
        assert response.json()["version"] == 2
        assert response.json()["childProductIds"] == ["202"]

    def test_get_linked_products(self, registered_client: TestClient, shop_headers: dict):
        link(registered_client, shop_headers, "101", ["202", "201"])

        response = registered_client.get("/api/products/101/linked-products", headers=shop_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["childProductIds"] == ["202", "201"]
        assert data["version"] == 1
        assert data["lastSyncedQuantity"] is None

    def test_get_linked_products_not_found(self, registered_client: TestClient, shop_headers: dict):
        registered_client.post("/api/products/101/sync-master", headers=shop_headers)

        response = registered_client.get("/api/products/101/linked-products", headers=shop_headers)

        assert response.status_code == 404
        assert response.json()["detail"] == "No linked products metafield found"

    def test_link_requires_master(self, registered_client: TestClient, shop_headers: dict):
        response = registered_client.put(
            "/api/products/101/linked-products",
            json={"childProductIds": ["201"]},
            headers=shop_headers,
        )

        assert response.status_code == 400
        assert response.json()["type"] == "InvalidStateError"

    @pytest.mark.parametrize(
        "body",
        [
            {"childProductIds": []},
            {},
            {"childProductIds": ["201"], "extra": True},
        ],
    )
    def test_link_rejects_invalid_body(self, registered_client: TestClient, shop_headers: dict, body):
        registered_client.post("/api/products/101/sync-master", headers=shop_headers)

        response = registered_client.put("/api/products/101/linked-products", json=body, headers=shop_headers)

        assert response.status_code == 400
        assert response.json()["type"] == "ValidationError"


class TestSyncInventory:
    """Tests for POST /api/products/{id}/sync-inventory."""

    def test_sync_inventory(self, registered_client: TestClient, shop_headers: dict, fake_shopify):
        link(registered_client, shop_headers, "101", ["201", "202"])

        response = registered_client.post(
            "/api/products/101/sync-inventory",
            json={"inventoryQuantity": 42},
            headers=shop_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["message"] == "Inventory synchronized across linked products."
        assert data["succeeded"] == ["201", "202"]
        assert data["failed"] == []
        assert data["version"] == 2
        assert fake_shopify.inventory_updates == [("201", 42), ("202", 42)]

    def test_sync_is_recorded_in_ledger(self, registered_client: TestClient, shop_headers: dict):
        link(registered_client, shop_headers, "101", ["201"])
        registered_client.post(
            "/api/products/101/sync-inventory",
            json={"inventoryQuantity": 9},
            headers=shop_headers,
        )

        response = registered_client.get("/api/products/101/linked-products", headers=shop_headers)

        data = response.json()
        assert data["lastSyncedQuantity"] == 9
        assert data["lastSyncedAt"] is not None

    def test_partial_failure(self, registered_client: TestClient, shop_headers: dict, fake_shopify):
        link(registered_client, shop_headers, "101", ["201", "202"])
        fake_shopify.fail_inventory_for.add("202")

        response = registered_client.post(
            "/api/products/101/sync-inventory",
            json={"inventoryQuantity": 3},
            headers=shop_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is False
        assert data["failed"] == ["202"]
        assert data["message"] == "Inventory synchronized for 1 of 2 linked products."
        assert data["results"][1] == {"productId": "202", "ok": False, "error": "HTTP error: 422"}

    def test_sync_without_linkage(self, registered_client: TestClient, shop_headers: dict, fake_shopify):
        registered_client.post("/api/products/101/sync-master", headers=shop_headers)

        response = registered_client.post(
            "/api/products/101/sync-inventory",
            json={"inventoryQuantity": 1},
            headers=shop_headers,
        )

        assert response.status_code == 404
        assert fake_shopify.inventory_updates == []

    @pytest.mark.parametrize(
        "body",
        [
            {"inventoryQuantity": -1},
            {"inventoryQuantity": "42"},
            {"inventoryQuantity": 4.5},
            {},
        ],
    )
    def test_rejects_invalid_quantity(self, registered_client: TestClient, shop_headers: dict, fake_shopify, body):
        link(registered_client, shop_headers, "101", ["201"])

        response = registered_client.post("/api/products/101/sync-inventory", json=body, headers=shop_headers)

        assert response.status_code == 400
        assert fake_shopify.inventory_updates == []


def test_list_products(registered_client: TestClient, shop_headers: dict, fake_shopify: FakeShopifyClient):
    fake_shopify.products = [
        {
            "id": product_gid("101"),
            "title": "Master tee",
            "handle": "master-tee",
            "status": "ACTIVE",
            "totalInventory": 10,
            "isSyncMaster": {"value": "true"},
            "linkedMaster": None,
        },
        {
            "id": product_gid("201"),
            "title": "Bundle tee",
            "handle": "bundle-tee",
            "status": "ACTIVE",
            "totalInventory": 10,
            "isSyncMaster": None,
            "linkedMaster": {"value": product_gid("101")},
        },
    ]

    response = registered_client.get("/api/products?first=10", headers=shop_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["hasNextPage"] is False
    assert [item["id"] for item in data["items"]] == ["101", "201"]
    assert data["items"][0]["isSyncMaster"] is True
    assert data["items"][1]["linkedMasterId"] == "101"


@pytest.mark.asyncio
async def test_sync_inventory_async(async_client, sample_store_data, shop_headers, fake_shopify):
    """The full flow also works through the ASGI transport."""
    await async_client.post("/api/stores", json=sample_store_data)
    await async_client.post("/api/products/101/sync-master", headers=shop_headers)
    await async_client.put(
        "/api/products/101/linked-products",
        json={"childProductIds": ["201", "202"]},
        headers=shop_headers,
    )

    response = await async_client.post(
        "/api/products/101/sync-inventory",
        json={"inventoryQuantity": 42},
        headers=shop_headers,
    )

    assert response.status_code == 200
    assert fake_shopify.inventory_updates == [("201", 42), ("202", 42)]

"""
Tests for the OAuth install flow.
"""
from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

from app.core.errors import UpstreamError
from app.services.metafield_schema import SchemaCheckResult
from app.services.oauth import TokenGrant
from tests.conftest import SHOP_DOMAIN, SHOP_ID, sign_oauth_params


@pytest.fixture
def callback_params() -> dict:
    return sign_oauth_params(
        {
            "shop": SHOP_DOMAIN,
            "code": "one-time-code",
            "state": "nonce-123",
            "timestamp": "1760000000",
        }
    )


@pytest.fixture
def state_cookie() -> dict:
    """Cookie set by GET /auth for the nonce in callback_params."""
    return {"Cookie": "shopify_oauth_state=nonce-123"}


@pytest.fixture
def oauth_mocks():
    """Patch the outbound calls the callback makes."""
    with (
        patch(
            "app.routers.auth.exchange_code_for_token",
            new=AsyncMock(return_value=TokenGrant(access_token="shpat_new", scopes="write_products")),
        ) as exchange,
        patch(
            "app.routers.auth.fetch_shop_identity",
            new=AsyncMock(return_value=(SHOP_ID, SHOP_DOMAIN)),
        ) as identity,
        patch(
            "app.routers.auth.ensure_metafield_definitions",
            new=AsyncMock(return_value=SchemaCheckResult(namespace=f"sync_logic_{SHOP_ID}")),
        ) as ensure,
    ):
        yield {"exchange": exchange, "identity": identity, "ensure": ensure}


class TestBeginInstall:
    """Tests for GET /auth."""

    def test_redirects_to_grant_screen(self, client: TestClient):
        response = client.get("/auth", params={"shop": SHOP_DOMAIN}, follow_redirects=False)

        assert response.status_code == 302
        location = urlparse(response.headers["location"])
        assert location.netloc == SHOP_DOMAIN
        assert location.path == "/admin/oauth/authorize"
        query = parse_qs(location.query)
        assert query["client_id"] == ["test-api-key"]
        assert query["redirect_uri"] == ["https://sync.example.com/auth/callback"]
        assert "shopify_oauth_state" in response.headers["set-cookie"]

    @pytest.mark.parametrize("shop", ["", "evil.com", "a.myshopify.com.evil.com"])
    def test_rejects_invalid_shop(self, client: TestClient, shop: str):
        response = client.get("/auth", params={"shop": shop}, follow_redirects=False)

        assert response.status_code == 400


class TestCallback:
    """Tests for GET /auth/callback."""

    def test_installs_store(self, client: TestClient, callback_params: dict, oauth_mocks: dict, state_cookie: dict):
        response = client.get("/auth/callback", params=callback_params, headers=state_cookie, follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == f"https://{SHOP_DOMAIN}/admin/apps/stock-sync"
        oauth_mocks["exchange"].assert_awaited_once_with(SHOP_DOMAIN, "one-time-code")
        oauth_mocks["ensure"].assert_awaited_once()
        assert oauth_mocks["ensure"].await_args.args[1] == f"sync_logic_{SHOP_ID}"

        store = client.get(f"/api/stores/{SHOP_DOMAIN}")
        assert store.status_code == 200
        assert store.json()["scopes"] == "write_products"

    def test_reinstall_updates_token(
        self,
        registered_client: TestClient,
        callback_params: dict,
        oauth_mocks: dict,
        shop_headers: dict,
        state_cookie: dict,
    ):
        registered_client.post("/api/products/101/sync-master", headers=shop_headers)
        pool = registered_client.app.state.client_pool
        assert SHOP_ID in pool

        response = registered_client.get("/auth/callback", params=callback_params, headers=state_cookie, follow_redirects=False)

        assert response.status_code == 302
        assert SHOP_ID not in pool
        assert registered_client.get(f"/api/stores/{SHOP_DOMAIN}").json()["scopes"] == "write_products"

    def test_definition_failure_does_not_block_install(
        self,
        client: TestClient,
        callback_params: dict,
        oauth_mocks: dict,
        state_cookie: dict,
    ):
        oauth_mocks["ensure"].side_effect = UpstreamError("HTTP error: 429", upstream_status=429)

        response = client.get("/auth/callback", params=callback_params, headers=state_cookie, follow_redirects=False)

        assert response.status_code == 302
        assert client.get(f"/api/stores/{SHOP_DOMAIN}").status_code == 200

    def test_rejects_bad_signature(self, client: TestClient, callback_params: dict, oauth_mocks: dict, state_cookie: dict):
        callback_params["code"] = "swapped-code"

        response = client.get("/auth/callback", params=callback_params, headers=state_cookie, follow_redirects=False)

        assert response.status_code == 401
        oauth_mocks["exchange"].assert_not_awaited()

    def test_rejects_state_mismatch(self, client: TestClient, callback_params: dict, oauth_mocks: dict):
        response = client.get(
            "/auth/callback",
            params=callback_params,
            headers={"Cookie": "shopify_oauth_state=other-nonce"},
            follow_redirects=False,
        )

        assert response.status_code == 401
        oauth_mocks["exchange"].assert_not_awaited()

    def test_missing_code(self, client: TestClient, oauth_mocks: dict):
        params = sign_oauth_params({"shop": SHOP_DOMAIN, "timestamp": "1"})

        response = client.get("/auth/callback", params=params, follow_redirects=False)

        assert response.status_code == 400

    def test_token_exchange_failure(self, client: TestClient, callback_params: dict, oauth_mocks: dict, state_cookie: dict):
        oauth_mocks["exchange"].side_effect = UpstreamError("Token exchange returned 400", upstream_status=400)

        response = client.get("/auth/callback", params=callback_params, headers=state_cookie, follow_redirects=False)

        assert response.status_code == 502
        assert client.get(f"/api/stores/{SHOP_DOMAIN}").status_code == 404

    def test_rejects_missing_state_cookie(self, client: TestClient, oauth_mocks: dict):
        params = sign_oauth_params(
            {
                "shop": SHOP_DOMAIN,
                "code": "one-time-code",
                "state": "attacker-chosen",
                "timestamp": "1760000000",
            }
        )

        response = client.get("/auth/callback", params=params, follow_redirects=False)

        assert response.status_code == 401
        oauth_mocks["exchange"].assert_not_awaited()
        assert client.get(f"/api/stores/{SHOP_DOMAIN}").status_code == 404

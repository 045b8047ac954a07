"""
Shopify OAuth helpers: authorize URL, code exchange, shop identity.
"""
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx

from app.core.config import settings
from app.core.errors import UpstreamError, ValidationError
from app.core.logging import get_logger
from app.services.shopify_client import ShopifyAdminClient

logger = get_logger(__name__)


@dataclass
class TokenGrant:
    access_token: str
    scopes: str


def callback_url() -> str:
    if not settings.shopify_app_url:
        raise ValidationError("SHOPIFY_APP_URL is not configured")
    return f"{settings.shopify_app_url.rstrip('/')}/auth/callback"


def build_install_url(shop: str, state: str) -> str:
    """Build the URL that asks the merchant to grant the app's scopes."""
    params = {
        "client_id": settings.shopify_api_key or "",
        "scope": settings.shopify_scopes,
        "redirect_uri": callback_url(),
        "state": state,
    }
    return f"https://{shop}/admin/oauth/authorize?{urlencode(params)}"


def admin_app_url(shop: str) -> str:
    return f"https://{shop}/admin/apps/{settings.shopify_app_handle}"


async def exchange_code_for_token(
    shop: str,
    code: str,
    http_client: Optional[httpx.AsyncClient] = None,
) -> TokenGrant:
    """
    Trade the one-time OAuth code for an offline access token.

    Raises:
        UpstreamError: When Shopify rejects the code or is unreachable
    """
    payload = {
        "client_id": settings.shopify_api_key,
        "client_secret": settings.shopify_api_secret,
        "code": code,
    }
    url = f"https://{shop}/admin/oauth/access_token"

    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(timeout=settings.shopify_http_timeout)
    try:
        response = await client.post(url, json=payload)
    except httpx.RequestError as e:
        logger.error("OAuth token exchange failed", shop=shop, error=str(e))
        raise UpstreamError(f"Token exchange failed: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    if response.is_error:
        logger.error("OAuth token exchange rejected", shop=shop, status=response.status_code)
        raise UpstreamError(
            f"Token exchange returned {response.status_code}",
            upstream_status=response.status_code,
        )

    data = response.json()
    access_token = data.get("access_token")
    if not access_token:
        raise UpstreamError("Token exchange returned no access token")

    logger.info("Access token received", shop=shop)
    return TokenGrant(access_token=access_token, scopes=data.get("scope", ""))


async def fetch_shop_identity(client: ShopifyAdminClient) -> tuple[str, str]:
    """Return (shop_id, myshopify domain) for the authenticated store."""
    shop = await client.get_shop()
    shop_id = shop.get("id")
    if shop_id is None:
        raise UpstreamError("Shop details did not include an id")
    domain = shop.get("myshopify_domain") or client.shop_domain
    return str(shop_id), domain

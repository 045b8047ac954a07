"""
Shopify OAuth install flow.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse

from app.core.errors import AppError, AuthError, ValidationError
from app.core.logging import bind_shop_context, get_logger
from app.core.security import (
    encrypt_token,
    generate_nonce,
    is_valid_shop_domain,
    verify_oauth_hmac,
)
from app.dependencies import get_client_pool, get_store_repository
from app.repositories.store import StoreRepository
from app.services.client_pool import ShopifyClientPool
from app.services.metafield_schema import ensure_metafield_definitions
from app.services.oauth import (
    admin_app_url,
    build_install_url,
    exchange_code_for_token,
    fetch_shop_identity,
)
from app.services.shopify_client import ShopifyAdminClient

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

STATE_COOKIE = "shopify_oauth_state"


def _require_shop(shop: str | None) -> str:
    if not shop:
        raise ValidationError("Missing required parameters")
    shop = shop.strip().lower()
    if not is_valid_shop_domain(shop):
        raise ValidationError("Invalid shop domain")
    bind_shop_context(shop)
    return shop


@router.get("")
async def begin_install(shop: str | None = None) -> RedirectResponse:
    """Redirect the merchant to Shopify's grant screen."""
    shop = _require_shop(shop)
    state = generate_nonce()

    response = RedirectResponse(build_install_url(shop, state), status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        STATE_COOKIE,
        state,
        max_age=300,
        httponly=True,
        secure=True,
        samesite="none",
    )
    logger.info("Starting OAuth install")
    return response


@router.get("/callback")
async def oauth_callback(
    request: Request,
    repo: Annotated[StoreRepository, Depends(get_store_repository)],
    pool: Annotated[ShopifyClientPool, Depends(get_client_pool)],
) -> RedirectResponse:
    """
    Complete the install: verify, exchange the code, persist the store.

    Metafield definitions are ensured best-effort; a failure there is
    logged and does not block the install.
    """
    params = dict(request.query_params)
    code = params.get("code")
    if not params.get("shop") or not code:
        raise ValidationError("Missing required parameters")
    shop = _require_shop(params["shop"])

    if not verify_oauth_hmac(params):
        raise AuthError("OAuth signature verification failed")

    expected_state = request.cookies.get(STATE_COOKIE)
    if not expected_state or expected_state != params.get("state"):
        raise AuthError("OAuth state mismatch")

    grant = await exchange_code_for_token(shop, code)

    client = ShopifyAdminClient(shop_domain=shop, access_token=grant.access_token)
    try:
        shop_id, domain = await fetch_shop_identity(client)

        store, created = await repo.create_or_update(
            shop_id=shop_id,
            domain=domain,
            access_token_encrypted=encrypt_token(grant.access_token),
            scopes=grant.scopes,
        )
        # Drop any client still holding the previous token
        await pool.invalidate(shop_id)
        logger.info("Store registered" if created else "Access token updated", shop_id=shop_id)

        try:
            await ensure_metafield_definitions(client, store.namespace)
        except AppError as e:
            logger.warning("Metafield definition check failed", shop_id=shop_id, error=e.message)
    finally:
        await client.aclose()

    response = RedirectResponse(admin_app_url(shop), status_code=status.HTTP_302_FOUND)
    response.delete_cookie(STATE_COOKIE)
    return response

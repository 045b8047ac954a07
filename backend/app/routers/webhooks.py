"""
Shopify webhook routes: app uninstall and mandatory compliance topics.

Every handler verifies the HMAC over the exact raw body before touching
any state.
"""
import json
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Header, Request

from app.core.errors import AuthError, ValidationError
from app.core.logging import bind_shop_context, get_logger
from app.core.security import verify_webhook_hmac
from app.dependencies import get_client_pool, get_store_repository
from app.repositories.store import StoreRepository
from app.services.client_pool import ShopifyClientPool

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


async def verified_body(
    request: Request,
    x_shopify_hmac_sha256: Annotated[Optional[str], Header()] = None,
) -> bytes:
    """Raw request body, only if its signature matches."""
    body = await request.body()
    if not verify_webhook_hmac(x_shopify_hmac_sha256, body):
        logger.warning("Webhook verification failed", path=request.url.path)
        raise AuthError("Unauthorized")
    return body


def _parse_json(body: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(body or b"{}")
    except json.JSONDecodeError as e:
        raise ValidationError("Webhook body is not valid JSON") from e
    if not isinstance(payload, dict):
        raise ValidationError("Webhook body must be a JSON object")
    return payload


@router.post("/app/uninstalled")
async def app_uninstalled(
    body: Annotated[bytes, Depends(verified_body)],
    repo: Annotated[StoreRepository, Depends(get_store_repository)],
    pool: Annotated[ShopifyClientPool, Depends(get_client_pool)],
    x_shopify_shop_domain: Annotated[Optional[str], Header()] = None,
) -> dict:
    """Remove all state for a store that uninstalled the app."""
    if not x_shopify_shop_domain:
        raise ValidationError("Bad Request: Missing shop domain")

    shop_domain = x_shopify_shop_domain.strip().lower()
    bind_shop_context(shop_domain)

    store = await repo.get_by_domain(shop_domain)
    if store is None:
        logger.info("Uninstall for unknown store, nothing to delete")
        return {"message": "App uninstalled"}

    shop_id = store.shop_id
    await repo.delete_store(store)
    await pool.invalidate(shop_id)

    logger.info("Store data removed upon app uninstall", shop_id=shop_id)
    return {"message": "App uninstalled"}


@router.post("/compliance")
async def compliance(
    body: Annotated[bytes, Depends(verified_body)],
    repo: Annotated[StoreRepository, Depends(get_store_repository)],
    pool: Annotated[ShopifyClientPool, Depends(get_client_pool)],
    x_shopify_topic: Annotated[Optional[str], Header()] = None,
) -> dict:
    """
    Mandatory privacy webhooks.

    No customer data is stored, so customer topics are acknowledged only.
    shop/redact deletes everything held for the shop.
    """
    payload = _parse_json(body)

    if x_shopify_topic in ("customers/data_request", "customers/redact"):
        logger.info("Compliance request acknowledged", topic=x_shopify_topic)
        return {"message": "Webhook received"}

    if x_shopify_topic != "shop/redact":
        raise ValidationError(f"Unknown compliance topic: {x_shopify_topic}")

    store = None
    if payload.get("shop_id") is not None:
        store = await repo.get_by_shop_id(str(payload["shop_id"]))
    if store is None and payload.get("shop_domain"):
        store = await repo.get_by_domain(str(payload["shop_domain"]).lower())

    if store is not None:
        shop_id = store.shop_id
        await repo.delete_store(store)
        await pool.invalidate(shop_id)
        logger.info("Shop data redacted", shop_id=shop_id)

    return {"message": "Webhook received"}

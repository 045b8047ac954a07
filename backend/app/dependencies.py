"""
Shared FastAPI dependencies: store resolution, client pool, sync engine.
"""
from collections.abc import AsyncGenerator
from typing import Annotated, Optional

from fastapi import Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.errors import AuthError, ValidationError
from app.core.logging import bind_shop_context
from app.models.store import Store
from app.repositories.linkage import LinkageRepository
from app.repositories.store import StoreRepository
from app.services.client_pool import ShopifyClientPool
from app.services.shopify_client import ShopifyAdminClient
from app.services.sync_engine import SyncMasterEngine


async def get_store_repository(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> StoreRepository:
    """Dependency to get store repository."""
    return StoreRepository(session)


async def get_linkage_repository(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> LinkageRepository:
    return LinkageRepository(session)


def get_client_pool(request: Request) -> ShopifyClientPool:
    return request.app.state.client_pool


async def get_shop_domain(
    x_shop_domain: Annotated[Optional[str], Header()] = None,
    shop: Annotated[Optional[str], Query()] = None,
) -> str:
    """Shop domain from the X-Shop-Domain header, falling back to ?shop=."""
    domain = (x_shop_domain or shop or "").strip().lower()
    if not domain:
        raise ValidationError("Missing shop domain")
    bind_shop_context(domain)
    return domain


async def get_current_store(
    shop_domain: Annotated[str, Depends(get_shop_domain)],
    repo: Annotated[StoreRepository, Depends(get_store_repository)],
) -> Store:
    """Resolve the calling store; no stored credential means 401."""
    store = await repo.get_by_domain(shop_domain)
    if store is None or not store.access_token_encrypted:
        raise AuthError("Unauthorized: Access token missing")
    return store


async def get_shopify_client(
    store: Annotated[Store, Depends(get_current_store)],
    pool: Annotated[ShopifyClientPool, Depends(get_client_pool)],
) -> AsyncGenerator[ShopifyAdminClient, None]:
    """Pooled client, leased until the request finishes."""
    async with pool.lease(store) as client:
        yield client


async def get_sync_engine(
    store: Annotated[Store, Depends(get_current_store)],
    client: Annotated[ShopifyAdminClient, Depends(get_shopify_client)],
) -> SyncMasterEngine:
    return SyncMasterEngine(client=client, namespace=store.namespace)


CurrentStore = Annotated[Store, Depends(get_current_store)]
ShopifyClient = Annotated[ShopifyAdminClient, Depends(get_shopify_client)]
SyncEngine = Annotated[SyncMasterEngine, Depends(get_sync_engine)]

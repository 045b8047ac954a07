"""
Store management API routes.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.logging import get_logger
from app.core.security import encrypt_token
from app.dependencies import get_store_repository
from app.repositories.store import StoreRepository
from app.schemas.store import StoreCreate, StoreResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/stores", tags=["stores"])


@router.post("", response_model=StoreResponse, status_code=status.HTTP_201_CREATED)
async def register_store(
    store_data: StoreCreate,
    repo: Annotated[StoreRepository, Depends(get_store_repository)],
) -> StoreResponse:
    """
    Register a store with an access token obtained elsewhere.

    Stores installed through OAuth are registered by the callback; this
    endpoint refuses to overwrite them.
    """
    if await repo.get_by_shop_id(store_data.shop_id) or await repo.get_by_domain(store_data.domain):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Store already registered",
        )

    store, _ = await repo.create_or_update(
        shop_id=store_data.shop_id,
        domain=store_data.domain,
        access_token_encrypted=encrypt_token(store_data.access_token),
        scopes=store_data.scopes,
    )

    logger.info("Registered store", domain=store_data.domain)
    return StoreResponse.model_validate(store)


@router.get("/{shop_domain}", response_model=StoreResponse)
async def get_store(
    shop_domain: str,
    repo: Annotated[StoreRepository, Depends(get_store_repository)],
) -> StoreResponse:
    """Get store details by domain."""
    store = await repo.get_by_domain(shop_domain)
    if not store:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Store not found",
        )
    return StoreResponse.model_validate(store)


"""
Metafield definition routes.
"""
from fastapi import APIRouter

from app.dependencies import CurrentStore, ShopifyClient
from app.schemas.store import MetafieldSchemaResponse
from app.services.metafield_schema import ensure_metafield_definitions

router = APIRouter(prefix="/metafields", tags=["metafields"])


@router.post("/ensure", response_model=MetafieldSchemaResponse)
async def ensure_definitions(
    store: CurrentStore,
    client: ShopifyClient,
) -> MetafieldSchemaResponse:
    """Check the store's sync metafield definitions and create missing ones."""
    result = await ensure_metafield_definitions(client, store.namespace)
    return MetafieldSchemaResponse.model_validate(result)

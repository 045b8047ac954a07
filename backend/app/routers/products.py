"""
Product sync API routes: sync master, linked products, inventory sync.
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from app.core.logging import get_logger
from app.dependencies import (
    CurrentStore,
    ShopifyClient,
    SyncEngine,
    get_linkage_repository,
)
from app.repositories.linkage import LinkageRepository
from app.schemas.product import (
    ChildSyncResultResponse,
    LinkageResponse,
    LinkChildrenRequest,
    ProductListResponse,
    ProductSummary,
    SyncInventoryRequest,
    SyncInventoryResponse,
    SyncMasterResponse,
)
from app.services.namespacing import parse_product_id

logger = get_logger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


def _reference_or_none(metafield: Optional[dict]) -> Optional[str]:
    if not metafield or not metafield.get("value"):
        return None
    return parse_product_id(metafield["value"])


@router.get("", response_model=ProductListResponse)
async def list_products(
    store: CurrentStore,
    client: ShopifyClient,
    first: int = Query(50, ge=1, le=250),
    after: Optional[str] = Query(None, description="Pagination cursor"),
) -> ProductListResponse:
    """List the store's products with their sync role."""
    data = await client.get_products(store.namespace, first=first, after=after)
    products = data.get("products") or {}

    items = []
    for edge in products.get("edges") or []:
        node = edge["node"]
        items.append(
            ProductSummary(
                id=parse_product_id(node["id"]),
                title=node.get("title", ""),
                handle=node.get("handle"),
                status=node.get("status"),
                total_inventory=node.get("totalInventory"),
                is_sync_master=((node.get("isSyncMaster") or {}).get("value") == "true"),
                linked_master_id=_reference_or_none(node.get("linkedMaster")),
            )
        )

    page_info = products.get("pageInfo") or {}
    return ProductListResponse(
        items=items,
        has_next_page=bool(page_info.get("hasNextPage")),
        end_cursor=page_info.get("endCursor"),
    )


@router.post("/{product_id}/sync-master", response_model=SyncMasterResponse)
async def set_sync_master(
    product_id: str,
    engine: SyncEngine,
) -> SyncMasterResponse:
    """
    Designate a product as sync master.

    Rejected with 400 when the product is already linked as a child.
    Calling it again on a master changes nothing.
    """
    result = await engine.designate_master(product_id)

    if result.changed:
        message = f"Product {result.product_id} is now the sync master."
    else:
        message = f"Product {result.product_id} is already the sync master."

    return SyncMasterResponse(
        message=message,
        product_id=result.product_id,
        changed=result.changed,
    )


@router.get("/{product_id}/linked-products", response_model=LinkageResponse)
async def get_linked_products(
    product_id: str,
    store: CurrentStore,
    engine: SyncEngine,
    repo: Annotated[LinkageRepository, Depends(get_linkage_repository)],
) -> LinkageResponse:
    """Read a master's children from Shopify, with the local ledger version."""
    linkage = await engine.get_linkage(product_id)
    ledger = await repo.get_for_master(store.shop_id, linkage.master_product_id)

    return LinkageResponse(
        master_product_id=linkage.master_product_id,
        child_product_ids=linkage.child_product_ids,
        version=ledger.version if ledger else None,
        last_synced_quantity=ledger.last_synced_quantity if ledger else None,
        last_synced_at=ledger.last_synced_at if ledger else None,
    )


@router.put("/{product_id}/linked-products", response_model=LinkageResponse)
async def link_products(
    product_id: str,
    body: LinkChildrenRequest,
    store: CurrentStore,
    engine: SyncEngine,
    repo: Annotated[LinkageRepository, Depends(get_linkage_repository)],
) -> LinkageResponse:
    """Replace the children linked to a sync master."""
    linkage = await engine.link_children(product_id, body.child_product_ids)
    ledger = await repo.upsert_children(
        store.shop_id,
        linkage.master_product_id,
        linkage.child_product_ids,
    )

    logger.info(
        "Linkage updated",
        master_product_id=linkage.master_product_id,
        version=ledger.version,
    )
    return LinkageResponse(
        master_product_id=linkage.master_product_id,
        child_product_ids=linkage.child_product_ids,
        version=ledger.version,
        last_synced_quantity=ledger.last_synced_quantity,
        last_synced_at=ledger.last_synced_at,
    )


@router.post("/{product_id}/sync-inventory", response_model=SyncInventoryResponse)
async def sync_inventory(
    product_id: str,
    body: SyncInventoryRequest,
    store: CurrentStore,
    engine: SyncEngine,
    repo: Annotated[LinkageRepository, Depends(get_linkage_repository)],
) -> SyncInventoryResponse:
    """
    Broadcast an inventory quantity to every linked child.

    Children are updated one at a time in stored order; the response
    reports each child's outcome instead of failing the whole call.
    """
    report = await engine.sync_inventory(product_id, body.inventory_quantity)
    ledger = await repo.record_sync(
        store.shop_id,
        report.master_product_id,
        [r.product_id for r in report.results],
        report.inventory_quantity,
    )

    if report.ok:
        message = "Inventory synchronized across linked products."
    else:
        message = f"Inventory synchronized for {len(report.succeeded)} of {len(report.results)} linked products."

    return SyncInventoryResponse(
        message=message,
        master_product_id=report.master_product_id,
        inventory_quantity=report.inventory_quantity,
        ok=report.ok,
        succeeded=report.succeeded,
        failed=report.failed,
        results=[
            ChildSyncResultResponse(product_id=r.product_id, ok=r.ok, error=r.error)
            for r in report.results
        ],
        version=ledger.version,
    )

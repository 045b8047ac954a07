"""
Product sync Pydantic schemas, one request/response pair per endpoint.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SyncMasterResponse(BaseModel):
    """Response for designating a sync master."""

    message: str
    product_id: str = Field(alias="productId")
    changed: bool

    model_config = ConfigDict(populate_by_name=True)


class LinkChildrenRequest(BaseModel):
    """Replace the set of children linked to a master."""

    child_product_ids: list[str] = Field(..., min_length=1, alias="childProductIds")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class LinkageResponse(BaseModel):
    """Linkage as stored on Shopify, plus the local ledger state."""

    master_product_id: str = Field(alias="masterProductId")
    child_product_ids: list[str] = Field(alias="childProductIds")
    version: Optional[int] = None
    last_synced_quantity: Optional[int] = Field(None, alias="lastSyncedQuantity")
    last_synced_at: Optional[datetime] = Field(None, alias="lastSyncedAt")

    model_config = ConfigDict(populate_by_name=True)


class SyncInventoryRequest(BaseModel):
    """Quantity to broadcast to every linked child."""

    inventory_quantity: int = Field(..., ge=0, strict=True, alias="inventoryQuantity")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class ChildSyncResultResponse(BaseModel):
    product_id: str = Field(alias="productId")
    ok: bool
    error: Optional[str] = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class SyncInventoryResponse(BaseModel):
    """Per-child outcome of an inventory sync."""

    message: str
    master_product_id: str = Field(alias="masterProductId")
    inventory_quantity: int = Field(alias="inventoryQuantity")
    ok: bool
    succeeded: list[str]
    failed: list[str]
    results: list[ChildSyncResultResponse]
    version: int

    model_config = ConfigDict(populate_by_name=True)


class ProductSummary(BaseModel):
    id: str
    title: str
    handle: Optional[str] = None
    status: Optional[str] = None
    total_inventory: Optional[int] = Field(None, alias="totalInventory")
    is_sync_master: bool = Field(False, alias="isSyncMaster")
    linked_master_id: Optional[str] = Field(None, alias="linkedMasterId")

    model_config = ConfigDict(populate_by_name=True)


class ProductListResponse(BaseModel):
    items: list[ProductSummary]
    has_next_page: bool = Field(alias="hasNextPage")
    end_cursor: Optional[str] = Field(None, alias="endCursor")

    model_config = ConfigDict(populate_by_name=True)

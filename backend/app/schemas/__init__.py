"""
Pydantic schemas package.
"""
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
from app.schemas.store import (
    MetafieldSchemaResponse,
    StoreBase,
    StoreCreate,
    StoreResponse,
)

__all__ = [
    # Store
    "StoreBase",
    "StoreCreate",
    "StoreResponse",
    "MetafieldSchemaResponse",
    # Product sync
    "SyncMasterResponse",
    "LinkChildrenRequest",
    "LinkageResponse",
    "SyncInventoryRequest",
    "SyncInventoryResponse",
    "ChildSyncResultResponse",
    "ProductSummary",
    "ProductListResponse",
]

"""
Services package for business logic layer.
"""
from app.services.client_pool import ShopifyClientPool
from app.services.metafield_schema import SchemaCheckResult, ensure_metafield_definitions
from app.services.shopify_client import ShopifyAdminClient
from app.services.sync_engine import SyncMasterEngine, SyncReport

__all__ = [
    "ShopifyAdminClient",
    "ShopifyClientPool",
    "SyncMasterEngine",
    "SyncReport",
    "SchemaCheckResult",
    "ensure_metafield_definitions",
]

"""
Metafield definition bootstrap.

Shopify requires a definition before reference-typed metafields can be
written, so every store gets its three sync definitions at install time.
"""
from dataclasses import dataclass, field

from app.core.errors import UpstreamError
from app.core.logging import get_logger
from app.services.namespacing import (
    IS_SYNC_MASTER_KEY,
    LINKED_MASTER_KEY,
    LINKED_PRODUCTS_KEY,
)
from app.services.shopify_client import ShopifyAdminClient

logger = get_logger(__name__)

# (key, name, type, description)
DEFINITIONS = [
    (
        IS_SYNC_MASTER_KEY,
        "Stock Sync Master",
        "boolean",
        "Indicates if the product is the master for inventory synchronization",
    ),
    (
        LINKED_PRODUCTS_KEY,
        "Linked Products",
        "list.product_reference",
        "Child products whose inventory follows this sync master",
    ),
    (
        LINKED_MASTER_KEY,
        "Linked Master",
        "product_reference",
        "Sync master this product's inventory follows",
    ),
]

_DUPLICATE_CODE = "TAKEN"
_DUPLICATE_MESSAGE = "has already been taken"


@dataclass
class SchemaCheckResult:
    namespace: str
    existing: list[str] = field(default_factory=list)
    created: list[str] = field(default_factory=list)


def _is_duplicate(user_errors: list[dict]) -> bool:
    """True when every user error reports the key as already taken."""
    return all(
        e.get("code") == _DUPLICATE_CODE or _DUPLICATE_MESSAGE in (e.get("message") or "").lower()
        for e in user_errors
    )


async def ensure_metafield_definitions(
    client: ShopifyAdminClient,
    namespace: str,
) -> SchemaCheckResult:
    """
    Create whichever sync metafield definitions are missing.

    Raises:
        UpstreamError: When a listing or create call fails, including
            after the throttle retry budget is spent
    """
    result = SchemaCheckResult(namespace=namespace)

    definitions = await client.get_metafield_definitions(namespace)
    present = {d.get("key") for d in definitions if d.get("namespace") == namespace}

    for key, name, type_, description in DEFINITIONS:
        if key in present:
            result.existing.append(key)
            continue

        created_id, user_errors = await client.create_metafield_definition(
            {
                "name": name,
                "namespace": namespace,
                "key": key,
                "type": type_,
                "description": description,
                "ownerType": "PRODUCT",
            }
        )

        if created_id:
            logger.info("Metafield definition created", namespace=namespace, key=key, id=created_id)
            result.created.append(key)
        elif user_errors and _is_duplicate(user_errors):
            result.existing.append(key)
        else:
            raise UpstreamError(user_errors or f"Definition {key} was not created")

    logger.info(
        "Metafield definitions checked",
        namespace=namespace,
        existing=result.existing,
        created=result.created,
    )
    return result

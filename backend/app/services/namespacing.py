"""
Per-store metafield namespace and product identity helpers.
"""
import re

from app.core.errors import ValidationError

NAMESPACE_PREFIX = "sync_logic_"

# Metafield keys, all stored under the store namespace
IS_SYNC_MASTER_KEY = "is_sync_master"
LINKED_PRODUCTS_KEY = "linked_products"
LINKED_MASTER_KEY = "linked_master"

PRODUCT_GID_PREFIX = "gid://shopify/Product/"

_INVALID_NAMESPACE_CHARS = re.compile(r"[^A-Za-z0-9_-]")
_NUMERIC_ID = re.compile(r"^[1-9][0-9]*$")


def namespace_for(shop_id: str | int) -> str:
    """
    Derive the metafield namespace for a store.

    Same shop id, same namespace. Characters Shopify rejects in a
    namespace are replaced with underscores.
    """
    shop_id = str(shop_id).strip()
    if not shop_id:
        raise ValidationError("Shop ID is required to derive a namespace")
    return NAMESPACE_PREFIX + _INVALID_NAMESPACE_CHARS.sub("_", shop_id)


def parse_product_id(value: str | int) -> str:
    """Normalize a numeric id or a product GID to the numeric id string."""
    text = str(value).strip()
    if text.startswith(PRODUCT_GID_PREFIX):
        text = text[len(PRODUCT_GID_PREFIX):]
    if not _NUMERIC_ID.match(text):
        raise ValidationError(f"Invalid product ID: {value!r}")
    return text


def product_gid(product_id: str | int) -> str:
    return PRODUCT_GID_PREFIX + parse_product_id(product_id)

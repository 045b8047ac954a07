"""
Sync-master propagation engine.

A master product owns an ordered list of child products, stored in the
master's `linked_products` metafield. Each child carries a `linked_master`
metafield pointing back at its master, which is what makes the rule
"a child cannot become a sync master" a single metafield read.

Inventory sync broadcasts one absolute quantity to every child, one
sequential update call per child, and reports the outcome per child.
"""
import json
from dataclasses import dataclass, field
from typing import Any, Optional

from app.core.errors import InvalidStateError, NotFoundError, UpstreamError, ValidationError
from app.core.logging import get_logger
from app.services.namespacing import (
    IS_SYNC_MASTER_KEY,
    LINKED_MASTER_KEY,
    LINKED_PRODUCTS_KEY,
    parse_product_id,
    product_gid,
)
from app.services.shopify_client import ShopifyAdminClient

logger = get_logger(__name__)

BOOLEAN_TYPE = "boolean"
PRODUCT_REFERENCE_TYPE = "product_reference"
PRODUCT_REFERENCE_LIST_TYPE = "list.product_reference"


@dataclass
class DesignationResult:
    product_id: str
    changed: bool


@dataclass
class Linkage:
    master_product_id: str
    child_product_ids: list[str]


@dataclass
class ChildSyncResult:
    product_id: str
    ok: bool
    error: Optional[str] = None


@dataclass
class SyncReport:
    master_product_id: str
    inventory_quantity: int
    results: list[ChildSyncResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[str]:
        return [r.product_id for r in self.results if r.ok]

    @property
    def failed(self) -> list[str]:
        return [r.product_id for r in self.results if not r.ok]

    @property
    def ok(self) -> bool:
        return not self.failed


def _is_true(metafield: Optional[dict[str, Any]]) -> bool:
    if metafield is None:
        return False
    value = metafield.get("value")
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def _reference_id(metafield: dict[str, Any]) -> str:
    try:
        return parse_product_id(metafield.get("value", ""))
    except ValidationError as e:
        raise UpstreamError(f"Malformed {LINKED_MASTER_KEY} metafield") from e


def _parse_reference_list(metafield: dict[str, Any]) -> list[str]:
    value = metafield.get("value")
    if isinstance(value, str):
        try:
            value = json.loads(value) if value.strip() else []
        except json.JSONDecodeError as e:
            raise UpstreamError(f"Malformed {LINKED_PRODUCTS_KEY} metafield") from e
    if not isinstance(value, list):
        raise UpstreamError(f"Malformed {LINKED_PRODUCTS_KEY} metafield")
    try:
        return [parse_product_id(item) for item in value]
    except ValidationError as e:
        raise UpstreamError(f"Malformed {LINKED_PRODUCTS_KEY} metafield") from e


class SyncMasterEngine:
    """Master/child linkage operations for one store."""

    def __init__(self, client: ShopifyAdminClient, namespace: str) -> None:
        self.client = client
        self.namespace = namespace

    async def _read_metafields(self, product_id: str) -> dict[str, dict[str, Any]]:
        metafields = await self.client.get_product_metafields(product_id, self.namespace)
        return {m["key"]: m for m in metafields if "key" in m}

    async def _write_metafield(
        self,
        product_id: str,
        existing: Optional[dict[str, Any]],
        key: str,
        value: str,
        type_: str,
    ) -> None:
        if existing is not None and existing.get("id") is not None:
            await self.client.update_product_metafield(product_id, existing["id"], value, type_)
        else:
            await self.client.create_product_metafield(product_id, self.namespace, key, value, type_)

    async def designate_master(self, product_id: str) -> DesignationResult:
        """Mark a product as sync master unless it is already someone's child."""
        product_id = parse_product_id(product_id)
        metafields = await self._read_metafields(product_id)

        if LINKED_MASTER_KEY in metafields:
            raise InvalidStateError("A child product cannot be set as a sync master")

        marker = metafields.get(IS_SYNC_MASTER_KEY)
        if _is_true(marker):
            return DesignationResult(product_id=product_id, changed=False)

        await self._write_metafield(product_id, marker, IS_SYNC_MASTER_KEY, "true", BOOLEAN_TYPE)
        logger.info("Product set as sync master", product_id=product_id)
        return DesignationResult(product_id=product_id, changed=True)

    async def link_children(
        self,
        master_product_id: str,
        child_product_ids: list[str],
    ) -> Linkage:
        """Replace the master's children. All checks run before any write."""
        master_id = parse_product_id(master_product_id)
        child_ids = [parse_product_id(c) for c in child_product_ids]

        if not child_ids:
            raise ValidationError("At least one child product is required")
        if len(set(child_ids)) != len(child_ids):
            raise ValidationError("Child products must be unique")
        if master_id in child_ids:
            raise ValidationError("A product cannot be linked to itself")

        master_fields = await self._read_metafields(master_id)
        if not _is_true(master_fields.get(IS_SYNC_MASTER_KEY)):
            raise InvalidStateError(f"Product {master_id} is not a sync master")

        master_gid = product_gid(master_id)
        previous = master_fields.get(LINKED_PRODUCTS_KEY)
        previous_ids = _parse_reference_list(previous) if previous else []

        child_fields: dict[str, dict[str, dict[str, Any]]] = {}
        for child_id in child_ids:
            fields = await self._read_metafields(child_id)
            if _is_true(fields.get(IS_SYNC_MASTER_KEY)):
                raise InvalidStateError(f"Product {child_id} is a sync master and cannot be linked as a child")
            owner = fields.get(LINKED_MASTER_KEY)
            if owner is not None and _reference_id(owner) != master_id:
                raise InvalidStateError(f"Product {child_id} is already linked to another master")
            child_fields[child_id] = fields

        dropped: dict[str, dict[str, Any]] = {}
        for old_id in previous_ids:
            if old_id in child_fields:
                continue
            owner = (await self._read_metafields(old_id)).get(LINKED_MASTER_KEY)
            if owner is not None and _reference_id(owner) == master_id:
                dropped[old_id] = owner

        await self._write_metafield(
            master_id,
            previous,
            LINKED_PRODUCTS_KEY,
            json.dumps([product_gid(c) for c in child_ids]),
            PRODUCT_REFERENCE_LIST_TYPE,
        )
        for child_id, fields in child_fields.items():
            if LINKED_MASTER_KEY not in fields:
                await self._write_metafield(
                    child_id, None, LINKED_MASTER_KEY, master_gid, PRODUCT_REFERENCE_TYPE
                )
        for old_id, owner in dropped.items():
            await self.client.delete_product_metafield(old_id, owner["id"])

        logger.info(
            "Linked child products",
            master_product_id=master_id,
            children=len(child_ids),
            unlinked=len(dropped),
        )
        return Linkage(master_product_id=master_id, child_product_ids=child_ids)

    async def get_linkage(self, master_product_id: str) -> Linkage:
        master_id = parse_product_id(master_product_id)
        metafields = await self._read_metafields(master_id)

        linked = metafields.get(LINKED_PRODUCTS_KEY)
        if linked is None:
            raise NotFoundError("No linked products metafield found")

        children = _parse_reference_list(linked)
        if master_id in children:
            logger.warning("Master listed among its own children, skipping it", master_product_id=master_id)
            children = [c for c in children if c != master_id]
        return Linkage(master_product_id=master_id, child_product_ids=children)

    async def sync_inventory(self, master_product_id: str, inventory_quantity: int) -> SyncReport:
        """
        Set inventory_quantity on every child, in stored order.

        Best-effort: a failed child is reported and the loop continues.
        Updates already applied are never rolled back.
        """
        if isinstance(inventory_quantity, bool) or not isinstance(inventory_quantity, int):
            raise ValidationError("Inventory quantity must be an integer")
        if inventory_quantity < 0:
            raise ValidationError("Inventory quantity must be non-negative")

        linkage = await self.get_linkage(master_product_id)
        report = SyncReport(
            master_product_id=linkage.master_product_id,
            inventory_quantity=inventory_quantity,
        )

        for child_id in linkage.child_product_ids:
            try:
                await self.client.update_product_inventory(child_id, inventory_quantity)
            except UpstreamError as e:
                logger.warning(
                    "Inventory update failed for child",
                    master_product_id=linkage.master_product_id,
                    product_id=child_id,
                    error=e.message,
                )
                report.results.append(ChildSyncResult(product_id=child_id, ok=False, error=e.message))
                continue
            report.results.append(ChildSyncResult(product_id=child_id, ok=True))

        logger.info(
            "Inventory synchronized across linked products",
            master_product_id=linkage.master_product_id,
            quantity=inventory_quantity,
            succeeded=len(report.succeeded),
            failed=len(report.failed),
        )
        return report

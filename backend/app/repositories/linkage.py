"""
Linkage ledger repository.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select

from app.models.linkage import ProductLinkage
from app.repositories.base import BaseRepository


class LinkageRepository(BaseRepository[ProductLinkage]):
    """Repository for ProductLinkage operations."""

    model = ProductLinkage

    async def get_for_master(
        self,
        shop_id: str,
        master_product_id: str,
    ) -> Optional[ProductLinkage]:
        stmt = select(ProductLinkage).where(
            ProductLinkage.shop_id == shop_id,
            ProductLinkage.master_product_id == master_product_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert_children(
        self,
        shop_id: str,
        master_product_id: str,
        child_product_ids: list[str],
    ) -> ProductLinkage:
        """Replace the recorded children for a master, bumping the version."""
        linkage = await self.get_for_master(shop_id, master_product_id)

        if linkage is None:
            linkage = ProductLinkage(
                shop_id=shop_id,
                master_product_id=master_product_id,
                child_product_ids=list(child_product_ids),
                version=1,
            )
            self.session.add(linkage)
        else:
            linkage.child_product_ids = list(child_product_ids)
            linkage.version += 1

        await self.session.flush()
        await self.session.refresh(linkage)
        return linkage

    async def record_sync(
        self,
        shop_id: str,
        master_product_id: str,
        child_product_ids: list[str],
        quantity: int,
    ) -> ProductLinkage:
        """
        Record a propagated quantity.

        Creates the ledger row when the linkage was written outside this
        service (for example from the admin UI directly into the metafield).
        """
        linkage = await self.get_for_master(shop_id, master_product_id)

        if linkage is None:
            linkage = ProductLinkage(
                shop_id=shop_id,
                master_product_id=master_product_id,
                child_product_ids=list(child_product_ids),
                version=1,
            )
            self.session.add(linkage)
        else:
            linkage.child_product_ids = list(child_product_ids)
            linkage.version += 1

        linkage.last_synced_quantity = quantity
        linkage.last_synced_at = datetime.now(timezone.utc)
        await self.session.flush()
        await self.session.refresh(linkage)
        return linkage

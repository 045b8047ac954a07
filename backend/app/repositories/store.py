"""
Store repository - the store directory backing credential lookups.
"""
from typing import Optional

from sqlalchemy import delete, select

from app.models.linkage import ProductLinkage
from app.models.store import Store
from app.repositories.base import BaseRepository


class StoreRepository(BaseRepository[Store]):
    """Repository for Store model operations."""

    model = Store

    async def get_by_shop_id(self, shop_id: str) -> Optional[Store]:
        return await self.get_by_id(str(shop_id))

    async def get_by_domain(self, domain: str) -> Optional[Store]:
        """Get a store by its myshopify domain."""
        stmt = select(Store).where(Store.domain == domain)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_or_update(
        self,
        shop_id: str,
        domain: str,
        access_token_encrypted: str,
        scopes: str,
    ) -> tuple[Store, bool]:
        """
        Create a new store or replace the credential of an existing one.

        Matching is on shop_id; the domain is refreshed because shops can
        be renamed. Returns (store, created) tuple.
        """
        existing = await self.get_by_shop_id(shop_id)

        if existing:
            existing.domain = domain
            existing.access_token_encrypted = access_token_encrypted
            existing.scopes = scopes
            await self.session.flush()
            await self.session.refresh(existing)
            return existing, False

        store = Store(
            shop_id=str(shop_id),
            domain=domain,
            access_token_encrypted=access_token_encrypted,
            scopes=scopes,
        )
        self.session.add(store)
        await self.session.flush()
        await self.session.refresh(store)
        return store, True

    async def delete_store(self, store: Store) -> None:
        """Delete a store together with its linkage ledger."""
        await self.session.execute(
            delete(ProductLinkage).where(ProductLinkage.shop_id == store.shop_id)
        )
        await self.delete(store)

"""
Bounded per-store pool of Shopify Admin clients.

One client (and its HTTP connection pool) per installed store, created
lazily, evicted least-recently-used, and retired when a store uninstalls
or re-authenticates. Callers hold a client through `lease()`; a retired
client is closed once its last lease is released.
"""
import asyncio
from collections import OrderedDict
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

from app.core.errors import AuthError
from app.core.logging import get_logger
from app.core.security import decrypt_token
from app.models.store import Store
from app.services.shopify_client import ShopifyAdminClient

logger = get_logger(__name__)

ClientFactory = Callable[[str, str], ShopifyAdminClient]


@dataclass
class _PoolEntry:
    client: ShopifyAdminClient
    credential: str
    leases: int = 0
    retired: bool = False


def default_client_factory(shop_domain: str, access_token: str) -> ShopifyAdminClient:
    return ShopifyAdminClient(shop_domain=shop_domain, access_token=access_token)


class ShopifyClientPool:
    """LRU cache of ShopifyAdminClient keyed by shop_id."""

    def __init__(
        self,
        max_size: int = 100,
        client_factory: ClientFactory = default_client_factory,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._client_factory = client_factory
        self._entries: OrderedDict[str, _PoolEntry] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, shop_id: object) -> bool:
        return shop_id in self._entries

    @staticmethod
    def _retire(entry: _PoolEntry, to_close: list[ShopifyAdminClient]) -> None:
        # Must be called with the lock held
        entry.retired = True
        if entry.leases == 0:
            to_close.append(entry.client)

    async def _checkout(self, store: Store) -> _PoolEntry:
        credential = store.access_token_encrypted
        if not credential:
            raise AuthError("Access token missing")

        to_close: list[ShopifyAdminClient] = []
        async with self._lock:
            entry = self._entries.get(store.shop_id)

            if entry is not None and entry.credential == credential:
                self._entries.move_to_end(store.shop_id)
                entry.leases += 1
                return entry

            if entry is not None:
                # Re-auth rotated the token
                self._retire(self._entries.pop(store.shop_id), to_close)

            try:
                access_token = decrypt_token(credential)
            except ValueError as e:
                raise AuthError("Stored access token is unreadable") from e

            entry = _PoolEntry(
                client=self._client_factory(store.domain, access_token),
                credential=credential,
                leases=1,
            )
            self._entries[store.shop_id] = entry
            logger.info("Created Shopify client", shop=store.domain, pool_size=len(self._entries))

            while len(self._entries) > self.max_size:
                shop_id, old = self._entries.popitem(last=False)
                logger.info("Evicted Shopify client", shop_id=shop_id)
                self._retire(old, to_close)

        for old_client in to_close:
            await old_client.aclose()
        return entry

    async def _release(self, entry: _PoolEntry) -> None:
        async with self._lock:
            entry.leases -= 1
            close_now = entry.retired and entry.leases == 0

        if close_now:
            await entry.client.aclose()

    @asynccontextmanager
    async def lease(self, store: Store) -> AsyncIterator[ShopifyAdminClient]:
        """Hold the store's client for the duration of the block."""
        entry = await self._checkout(store)
        try:
            yield entry.client
        finally:
            await self._release(entry)

    async def invalidate(self, shop_id: str) -> bool:
        """
        Drop a store's client. Returns whether one was cached.

        The client is closed now if idle, otherwise when its last lease ends.
        """
        to_close: list[ShopifyAdminClient] = []
        async with self._lock:
            entry = self._entries.pop(str(shop_id), None)
            if entry is not None:
                self._retire(entry, to_close)

        if entry is None:
            return False

        for client in to_close:
            await client.aclose()
        logger.info("Invalidated Shopify client", shop_id=shop_id, deferred=not to_close)
        return True

    async def close_all(self) -> None:
        async with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()

        for entry in entries:
            await entry.client.aclose()
        logger.info("Closed Shopify client pool", closed=len(entries))

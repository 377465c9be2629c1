"""
Process-local cache of live, connected adapters.

Keys are `(tenant_id, table_id or "default")`. Entries live until they are
invalidated; there is no TTL. Every operation here is synchronous, so on the
event loop a lookup or insert cannot interleave with another coroutine.

An adapter is built across awaits (config load, connect). Invalidation bumps a
generation number, and `put_if_current` refuses entries whose build started
before the latest invalidation of their tenant.
"""

from __future__ import annotations

import logging

from .base import DataSourceAdapter

logger = logging.getLogger(__name__)

DEFAULT_TABLE_KEY = "default"

CacheKey = tuple[str, str]
Generation = tuple[int, int]


def cache_key(tenant_id: str, table_id: str | None = None) -> CacheKey:
    return (str(tenant_id), table_id or DEFAULT_TABLE_KEY)


class AdapterCache:
    def __init__(self) -> None:
        self._entries: dict[CacheKey, DataSourceAdapter] = {}
        self._epoch = 0
        self._tenant_generations: dict[str, int] = {}

    def get(self, key: CacheKey) -> DataSourceAdapter | None:
        return self._entries.get(key)

    def put(self, key: CacheKey, adapter: DataSourceAdapter) -> None:
        self._entries[key] = adapter

    def generation(self, tenant_id: str) -> Generation:
        return (self._epoch, self._tenant_generations.get(str(tenant_id), 0))

    def put_if_current(self, key: CacheKey, adapter: DataSourceAdapter, generation: Generation) -> bool:
        if self.generation(key[0]) != generation:
            return False
        self._entries[key] = adapter
        return True

    def invalidate(self, key: CacheKey) -> None:
        self._entries.pop(key, None)

    def invalidate_tenant(self, tenant_id: str) -> int:
        tenant_id = str(tenant_id)
        self._tenant_generations[tenant_id] = self._tenant_generations.get(tenant_id, 0) + 1
        keys = [key for key in self._entries if key[0] == tenant_id]
        for key in keys:
            del self._entries[key]
        logger.info("adapter_cache_invalidated tenant_id=%s entries=%s", tenant_id, len(keys))
        return len(keys)

    def invalidate_all(self) -> int:
        count = len(self._entries)
        self._epoch += 1
        self._entries.clear()
        logger.info("adapter_cache_cleared entries=%s", count)
        return count

    def keys(self) -> list[CacheKey]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

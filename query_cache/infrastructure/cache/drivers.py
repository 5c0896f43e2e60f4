"""Cache drivers: uniform get/set/delete/expire over heterogeneous stores.

CacheDriver is the generic driver and the shared contract. It assumes the
store exposes the CacheStoreProtocol shape; concrete subclasses adapt
backends whose native API differs. Drivers never catch backend errors:
connection failures propagate to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import redis

from query_cache.core.constants import (
    CACHE_BACKEND_GENERIC,
    CACHE_BACKEND_MEMCACHE,
    CACHE_BACKEND_MEMORY,
    CACHE_BACKEND_REDIS,
)
from query_cache.domain.exceptions import CacheDeserializationException
from query_cache.domain.value_objects import CacheOptions
from query_cache.infrastructure.cache.cache_protocol import (
    CacheStoreProtocol,
    SerializerProtocol,
)
from query_cache.infrastructure.cache.serializers import get_default_serializer

logger = logging.getLogger(__name__)


def _ttl_from_options(options: CacheOptions | Mapping[str, Any] | None) -> int | None:
    if options is None:
        return None
    if isinstance(options, CacheOptions):
        return options.ttl
    return options.get("ttl")


class CacheDriver:
    """Generic driver over any store with get/set/delete/expire.

    Args:
        store: Backend store handle (shared by every query of a model).
        serializer: Row serializer; defaults to JsonRowSerializer.
    """

    backend_id: str = CACHE_BACKEND_GENERIC

    def __init__(
        self,
        store: CacheStoreProtocol,
        serializer: SerializerProtocol | None = None,
    ) -> None:
        self.store = store
        self.serializer = serializer or get_default_serializer()

    def get(self, key: str) -> list[dict[str, Any]] | None:
        """Return deserialized rows, or None when the key is absent.

        Raises:
            CacheDeserializationException: If the stored payload is corrupt.
        """
        payload = self._store_get(key)
        if payload is None:
            return None
        try:
            return self.serializer.deserialize(payload)
        except CacheDeserializationException as e:
            e.details.setdefault("key", key)
            raise

    def set(
        self,
        key: str,
        rows: list[dict[str, Any]],
        options: CacheOptions | Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Serialize and store rows, then apply the TTL as a separate step.

        Returns:
            The rows that were stored (unchanged).
        """
        self._store_set(key, self.serializer.serialize(rows))
        ttl = _ttl_from_options(options)
        if ttl is not None:
            self.expire(key, ttl)
        return rows

    def delete(self, key: str) -> None:
        """Remove key; deleting an absent key is not an error."""
        self._store_delete(key)

    def expire(self, key: str, ttl: int) -> None:
        """Set or refresh the TTL (seconds) of an existing key."""
        self.store.expire(key, ttl)

    def _store_get(self, key: str) -> bytes | str | None:
        return self.store.get(key)

    def _store_set(self, key: str, payload: bytes) -> None:
        self.store.set(key, payload)

    def _store_delete(self, key: str) -> None:
        self.store.delete(key)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(store={type(self.store).__name__}, "
            f"serializer={type(self.serializer).__name__})"
        )


class InMemoryCacheDriver(CacheDriver):
    """Driver for InMemoryStore; the store already matches the generic shape."""

    backend_id: str = CACHE_BACKEND_MEMORY


class RedisCacheDriver(CacheDriver):
    """Driver for a sync redis.Redis client (native EXPIRE)."""

    backend_id: str = CACHE_BACKEND_REDIS

    def __init__(
        self,
        store: redis.Redis,
        serializer: SerializerProtocol | None = None,
    ) -> None:
        super().__init__(store, serializer)

    def expire(self, key: str, ttl: int) -> None:
        # EXPIRE takes whole seconds
        self.store.expire(key, int(ttl))


class MemcacheCacheDriver(CacheDriver):
    """Driver for memcache clients (pymemcache-style set(key, value, expire=)).

    Memcache has no portable TTL refresh, so expire() re-sets the stored
    payload with the new expiry. The get + set round trip is not atomic.
    """

    backend_id: str = CACHE_BACKEND_MEMCACHE

    def expire(self, key: str, ttl: int) -> None:
        payload = self.store.get(key)
        if payload is None:
            logger.debug("Cache EXPIRE skipped, key absent: %s", key)
            return
        self.store.set(key, payload, expire=int(ttl))

"""Cache driver registry keyed by backend tag.

Driver selection is explicit: callers name the backend ("redis",
"memcache", ...) instead of the store's runtime type being inspected.
"""

from __future__ import annotations

from threading import Lock

from query_cache.core.constants import CACHE_BACKEND_GENERIC
from query_cache.domain.exceptions import (
    CacheDriverAlreadyRegisteredException,
    CacheDriverNotFoundException,
    QueryCacheException,
)
from query_cache.infrastructure.cache.cache_protocol import (
    CacheStoreProtocol,
    SerializerProtocol,
)
from query_cache.infrastructure.cache.drivers import (
    CacheDriver,
    InMemoryCacheDriver,
    MemcacheCacheDriver,
    RedisCacheDriver,
)

_REGISTRY: dict[str, type[CacheDriver]] = {}
_LOCK = Lock()


def _normalize(backend: str) -> str:
    key = backend.strip().lower()
    if not key:
        raise QueryCacheException("Cache driver backend id must be non-empty", "INVALID_BACKEND")
    return key


def register_cache_driver(
    backend: str,
    driver_cls: type[CacheDriver],
    *,
    overwrite: bool = False,
) -> None:
    """Register a driver class under a backend tag."""
    key = _normalize(backend)
    with _LOCK:
        if key in _REGISTRY and not overwrite:
            raise CacheDriverAlreadyRegisteredException(key)
        _REGISTRY[key] = driver_cls


def unregister_cache_driver(backend: str) -> None:
    """Remove a backend tag; unknown tags are ignored."""
    with _LOCK:
        _REGISTRY.pop(_normalize(backend), None)


def create_cache_driver(
    store: CacheStoreProtocol,
    *,
    backend: str = CACHE_BACKEND_GENERIC,
    serializer: SerializerProtocol | None = None,
) -> CacheDriver:
    """Instantiate the driver registered for backend around store.

    Args:
        store: Backend store handle.
        backend: Registered backend tag; "generic" works for any store with
            get/set/delete/expire.
        serializer: Optional serializer override.

    Raises:
        CacheDriverNotFoundException: If backend has no registered driver.
    """
    key = _normalize(backend)
    with _LOCK:
        driver_cls = _REGISTRY.get(key)
    if driver_cls is None:
        raise CacheDriverNotFoundException(backend)
    return driver_cls(store, serializer=serializer)


def list_cache_driver_backends() -> list[str]:
    """List registered backend tags."""
    with _LOCK:
        return sorted(_REGISTRY.keys())


for _driver_cls in (CacheDriver, InMemoryCacheDriver, RedisCacheDriver, MemcacheCacheDriver):
    register_cache_driver(_driver_cls.backend_id, _driver_cls)

"""Build backend stores and drivers from Settings.

Only backends the package can construct on its own are supported here
(memory, redis). Generic and memcache stores must be created by the
caller and passed to create_cache_driver() directly.
"""

from __future__ import annotations

import logging

import redis

from query_cache.core.config import Settings, get_settings
from query_cache.core.constants import CACHE_BACKEND_MEMORY, CACHE_BACKEND_REDIS
from query_cache.domain.exceptions import QueryCacheException
from query_cache.infrastructure.cache.cache_protocol import (
    CacheStoreProtocol,
    SerializerProtocol,
)
from query_cache.infrastructure.cache.drivers import CacheDriver
from query_cache.infrastructure.cache.memory_store import InMemoryStore
from query_cache.infrastructure.cache.registry import create_cache_driver

logger = logging.getLogger(__name__)


def create_store_from_settings(settings: Settings | None = None) -> CacheStoreProtocol:
    """Create the store named by settings.backend.

    The Redis client connects lazily on first command; no ping is issued
    here, so an unreachable server surfaces on the first cache operation.

    Raises:
        QueryCacheException: If the backend cannot be built from settings.
    """
    settings = settings or get_settings()
    if settings.backend == CACHE_BACKEND_MEMORY:
        logger.info("Query cache using in-memory store")
        return InMemoryStore()
    if settings.backend == CACHE_BACKEND_REDIS:
        client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            password=settings.redis_password.get_secret_value() if settings.redis_password else None,
            socket_timeout=settings.redis_socket_timeout,
            socket_connect_timeout=settings.redis_socket_timeout,
            socket_keepalive=True,
        )
        logger.info(
            "Query cache using Redis store: %s:%s/%s",
            settings.redis_host,
            settings.redis_port,
            settings.redis_db,
        )
        return client
    # Settings validation only admits memory and redis
    raise QueryCacheException(
        f"Backend '{settings.backend}' cannot be built from settings",
        "STORE_NOT_CONSTRUCTIBLE",
        {"backend": settings.backend},
    )


def create_driver_from_settings(
    settings: Settings | None = None,
    serializer: SerializerProtocol | None = None,
) -> CacheDriver:
    """Create a store from settings and wrap it in the matching driver."""
    settings = settings or get_settings()
    store = create_store_from_settings(settings)
    return create_cache_driver(store, backend=settings.backend, serializer=serializer)

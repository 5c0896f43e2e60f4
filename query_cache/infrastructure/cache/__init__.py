"""Cache: drivers, serializers, stores and cache key utilities.

Drivers are selected by backend tag through the registry; key format is
in keys.py (DRY).
"""

from query_cache.infrastructure.cache.cache_protocol import (
    CacheStoreProtocol,
    SerializerProtocol,
)
from query_cache.infrastructure.cache.connection import (
    create_driver_from_settings,
    create_store_from_settings,
)
from query_cache.infrastructure.cache.drivers import (
    CacheDriver,
    InMemoryCacheDriver,
    MemcacheCacheDriver,
    RedisCacheDriver,
)
from query_cache.infrastructure.cache.keys import (
    canonical_form,
    coerce_manual_cache_key,
    derive_cache_key,
)
from query_cache.infrastructure.cache.locks import KeyedLocks
from query_cache.infrastructure.cache.memory_store import InMemoryStore
from query_cache.infrastructure.cache.registry import (
    create_cache_driver,
    list_cache_driver_backends,
    register_cache_driver,
    unregister_cache_driver,
)
from query_cache.infrastructure.cache.serializers import (
    JsonRowSerializer,
    get_default_serializer,
)

__all__ = [
    "CacheStoreProtocol",
    "SerializerProtocol",
    "CacheDriver",
    "InMemoryCacheDriver",
    "MemcacheCacheDriver",
    "RedisCacheDriver",
    "InMemoryStore",
    "JsonRowSerializer",
    "KeyedLocks",
    "canonical_form",
    "coerce_manual_cache_key",
    "create_cache_driver",
    "create_driver_from_settings",
    "create_store_from_settings",
    "derive_cache_key",
    "get_default_serializer",
    "list_cache_driver_backends",
    "register_cache_driver",
    "unregister_cache_driver",
]

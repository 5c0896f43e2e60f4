"""Query result caching for SQLAlchemy.

Decides whether a query result is served from / written to a key/value
cache, derives a stable key per query, and drops entries after UPDATE and
DELETE so the cache stays coherent with the database.
"""

from query_cache.application import (
    CacheableMixin,
    CachedQuery,
    ModelCacheConfig,
    QueryCacheService,
    configure_model,
    create_query_cache_service,
    get_model_config,
    inherit_model,
    install_cache_listeners,
)
from query_cache.domain.enums import CacheOverride
from query_cache.domain.policy import is_cacheable_by_default
from query_cache.domain.value_objects import CacheByDefault, CacheOptions
from query_cache.infrastructure.cache import (
    CacheDriver,
    InMemoryStore,
    JsonRowSerializer,
    create_cache_driver,
    derive_cache_key,
    register_cache_driver,
)
from query_cache.infrastructure.persistence import SessionQueryExecutor

__version__ = "1.0.0"

__all__ = [
    "CacheByDefault",
    "CacheDriver",
    "CacheOptions",
    "CacheOverride",
    "CacheableMixin",
    "CachedQuery",
    "InMemoryStore",
    "JsonRowSerializer",
    "ModelCacheConfig",
    "QueryCacheService",
    "SessionQueryExecutor",
    "configure_model",
    "create_cache_driver",
    "create_query_cache_service",
    "derive_cache_key",
    "get_model_config",
    "inherit_model",
    "install_cache_listeners",
    "is_cacheable_by_default",
    "register_cache_driver",
]

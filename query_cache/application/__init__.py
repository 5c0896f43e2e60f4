"""Application: cached query value, coordinator service and model configuration."""

from query_cache.application.model_config import (
    CacheableMixin,
    ModelCacheConfig,
    configure_model,
    create_query_cache_service,
    get_model_config,
    inherit_model,
    install_cache_listeners,
)
from query_cache.application.query import CachedQuery
from query_cache.application.services import QueryCacheService

__all__ = [
    "CachedQuery",
    "CacheableMixin",
    "ModelCacheConfig",
    "QueryCacheService",
    "configure_model",
    "create_query_cache_service",
    "get_model_config",
    "inherit_model",
    "install_cache_listeners",
]

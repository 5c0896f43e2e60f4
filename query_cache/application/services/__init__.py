"""Application services: query cache coordinator."""

from query_cache.application.services.query_cache_service import QueryCacheService

__all__ = ["QueryCacheService"]

"""Domain value objects and shared value types."""

from query_cache.domain.value_objects.core import CacheByDefault, CacheOptions

__all__ = [
    "CacheByDefault",
    "CacheOptions",
]

"""Domain enumerations for the query cache.

Enums represent fixed sets of domain values (e.g. per-query cache override).
"""

from enum import Enum


class CacheOverride(str, Enum):
    """Per-query cacheability override.

    UNSET defers to the model's cache_by_default policy. FORCE_CACHE and
    FORCE_BYPASS win over the policy and are carried into cloned queries.
    """

    UNSET = "unset"
    FORCE_CACHE = "force_cache"
    FORCE_BYPASS = "force_bypass"

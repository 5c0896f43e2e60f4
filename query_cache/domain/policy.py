"""Cacheability policy: decide whether a query result is a caching candidate.

Pure function of the query's limit and the model's cache_by_default
setting. Only consulted when the query carries no explicit override.
"""

from collections.abc import Mapping
from typing import Any

from query_cache.domain.value_objects import CacheByDefault


def is_cacheable_by_default(
    limit: int | None,
    cache_by_default: CacheByDefault | bool | Mapping[str, Any],
) -> bool:
    """Return True when a query with this limit should be cached by default.

    Queries with a limit are decided by if_limit when it is configured:
    True accepts any limit, an int accepts limits up to that ceiling.
    Everything else falls back to the always flag.

    Args:
        limit: The query's LIMIT value, or None when unbounded.
        cache_by_default: Policy object, plain bool, or {always, if_limit} mapping.

    Returns:
        Whether the query is cacheable by default.
    """
    policy = CacheByDefault.coerce(cache_by_default)
    if limit is not None and policy.limit_rule_enabled:
        if policy.if_limit is True or policy.if_limit >= limit:
            return True
    return policy.always

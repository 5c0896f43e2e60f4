"""Domain value objects for the query cache.

Value objects are immutable types with self-validation. CacheOptions is
copied (never shared) when a model inherits its parent's configuration.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from query_cache.core.constants import CACHE_DEFAULT_IF_LIMIT, CACHE_DEFAULT_TTL


def _validate_if_limit(value: Any) -> None:
    """Raise ValueError unless value is a bool, a non-negative int, or None."""
    if value is None or isinstance(value, bool):
        return
    if not isinstance(value, int):
        raise ValueError(f"if_limit must be a bool or an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"if_limit must be >= 0, got {value}")


@dataclass(frozen=True)
class CacheByDefault:
    """Default cacheability policy for queries with no explicit override.

    always: cache every query that is not decided by if_limit.
    if_limit: True caches any limited query; an int caches limited queries
    whose limit is at most that value; False disables the limit rule.
    """

    always: bool = False
    if_limit: bool | int = CACHE_DEFAULT_IF_LIMIT

    def __post_init__(self) -> None:
        _validate_if_limit(self.if_limit)

    @property
    def limit_rule_enabled(self) -> bool:
        """True when if_limit is configured (anything except False/None)."""
        return self.if_limit is not False and self.if_limit is not None

    @classmethod
    def coerce(cls, value: "CacheByDefault | bool | Mapping[str, Any]") -> "CacheByDefault":
        """Build a policy from a bool, a mapping, or an existing instance.

        A plain bool becomes the always flag with the limit rule disabled.
        A mapping replaces the policy: missing keys are treated as disabled.
        """
        if isinstance(value, CacheByDefault):
            return value
        if isinstance(value, bool):
            return cls(always=value, if_limit=False)
        if isinstance(value, Mapping):
            unknown = set(value) - {"always", "if_limit"}
            if unknown:
                raise ValueError(f"Unknown cache_by_default keys: {sorted(unknown)}")
            return cls(
                always=bool(value.get("always", False)),
                if_limit=value.get("if_limit", False),
            )
        raise ValueError(
            f"cache_by_default must be a bool, mapping or CacheByDefault, got {type(value).__name__}"
        )


@dataclass(frozen=True)
class CacheOptions:
    """Per-model cache options.

    ttl is in seconds; None stores entries without an expiry and leaves
    eviction to the backend.
    """

    ttl: int | None = CACHE_DEFAULT_TTL
    cache_by_default: CacheByDefault = field(default_factory=CacheByDefault)

    def __post_init__(self) -> None:
        if self.ttl is not None and (isinstance(self.ttl, bool) or self.ttl < 0):
            raise ValueError(f"ttl must be a non-negative int or None, got {self.ttl!r}")

    def merged(self, **overrides: Any) -> "CacheOptions":
        """Return a copy with overrides applied (cache_by_default is coerced)."""
        if "cache_by_default" in overrides:
            overrides["cache_by_default"] = CacheByDefault.coerce(
                overrides["cache_by_default"]
            )
        unknown = set(overrides) - {"ttl", "cache_by_default"}
        if unknown:
            raise ValueError(f"Unknown cache option(s): {sorted(unknown)}")
        return replace(self, **overrides)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ttl": self.ttl,
            "cache_by_default": {
                "always": self.cache_by_default.always,
                "if_limit": self.cache_by_default.if_limit,
            },
        }

"""Cache protocols for the driver layer (DIP).

CacheStoreProtocol is the shape every backend store must expose; drivers
adapt stores whose native API differs (e.g. memcache TTL handling).
"""

from typing import Any, Protocol


class CacheStoreProtocol(Protocol):
    """Protocol for raw key/value stores (Redis, memcache, in-memory)."""

    def get(self, key: str) -> bytes | None:
        """Return stored bytes or None if the key is absent."""
        ...

    def set(self, key: str, value: bytes) -> Any:
        """Store bytes under key."""
        ...

    def delete(self, key: str) -> Any:
        """Remove key; absent keys are not an error."""
        ...

    def expire(self, key: str, ttl: int) -> Any:
        """Set or refresh the time-to-live of an existing key (seconds)."""
        ...


class SerializerProtocol(Protocol):
    """Protocol for row serializers injected into drivers."""

    def serialize(self, rows: list[dict[str, Any]]) -> bytes:
        """Encode an ordered row sequence into an opaque payload."""
        ...

    def deserialize(self, payload: bytes) -> list[dict[str, Any]]:
        """Decode a payload produced by serialize()."""
        ...

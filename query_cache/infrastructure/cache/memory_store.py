"""Process-local key/value store suitable for development/test workloads.

Implements the CacheStoreProtocol shape (get/set/delete/expire) so the
generic driver can use it without adaptation.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock


@dataclass(slots=True)
class _StoredValue:
    value: bytes
    expires_at_s: float | None = None


class InMemoryStore:
    """Dict-backed store with lazy TTL expiry.

    Args:
        clock: Monotonic time source in seconds.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._rows: dict[str, _StoredValue] = {}
        self._lock = Lock()
        self._clock = clock

    def get(self, key: str) -> bytes | None:
        with self._lock:
            row = self._rows.get(key)
            if row is None:
                return None
            if row.expires_at_s is not None and row.expires_at_s <= self._clock():
                self._rows.pop(key, None)
                return None
            return row.value

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._rows[key] = _StoredValue(value=value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._rows.pop(key, None)

    def expire(self, key: str, ttl: int) -> None:
        """Set TTL on an existing key; ttl <= 0 removes the key immediately."""
        with self._lock:
            row = self._rows.get(key)
            if row is None:
                return
            if ttl <= 0:
                self._rows.pop(key, None)
                return
            row.expires_at_s = self._clock() + ttl

    def ttl(self, key: str) -> float | None:
        """Return remaining seconds for key, or None if absent or persistent."""
        with self._lock:
            row = self._rows.get(key)
            if row is None or row.expires_at_s is None:
                return None
            return max(0.0, row.expires_at_s - self._clock())

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)

    def clear(self) -> None:
        with self._lock:
            self._rows.clear()

"""
In-memory TTL store.

A dict with per-entry expiry. Expired entries read as absent and are purged
on access; purge_expired() sweeps the whole store. The clock is injectable
so tests can advance time without sleeping.
"""

import threading
import time
from typing import Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], float]


class TTLStore(Generic[K, V]):
    """
    Key/value store with per-entry time-to-live.

    Not a cache policy on its own: callers choose the TTL per write
    (e.g. 3600s for successes, 300s for failures).
    """

    def __init__(self, default_ttl: float, clock: Optional[Clock] = None):
        """
        Args:
            default_ttl: TTL in seconds used when set() is given none
            clock: Monotonic time source (defaults to time.monotonic)
        """
        self.default_ttl = default_ttl
        self.clock = clock or time.monotonic
        self._data: Dict[K, Tuple[V, float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: K) -> bool:
        return self.get(key) is not None

    def get(self, key: K) -> Optional[V]:
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            value, expires_at = item
            if self.clock() >= expires_at:
                del self._data[key]
                return None
            return value

    def set(self, key: K, value: V, ttl: Optional[float] = None) -> None:
        expires_at = self.clock() + (self.default_ttl if ttl is None else ttl)
        with self._lock:
            self._data[key] = (value, expires_at)

    def delete(self, key: K) -> bool:
        """Remove a key; returns whether a live entry was removed."""
        with self._lock:
            item = self._data.pop(key, None)
        return item is not None and self.clock() < item[1]

    def ttl_remaining(self, key: K) -> Optional[float]:
        with self._lock:
            item = self._data.get(key)
        if item is None:
            return None
        remaining = item[1] - self.clock()
        return remaining if remaining > 0 else None

    def delete_where(self, predicate: Callable[[K], bool]) -> int:
        """Remove every key matching predicate; returns how many were removed."""
        with self._lock:
            matched = [key for key in self._data if predicate(key)]
            for key in matched:
                del self._data[key]
        return len(matched)

    def purge_expired(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        now = self.clock()
        with self._lock:
            expired = [key for key, (_, expires_at) in self._data.items() if now >= expires_at]
            for key in expired:
                del self._data[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

"""
In-process metadata cache shared by all registry lookups.
"""

import threading
import time
from typing import Any, Callable, Dict, NamedTuple, Optional

from cachetools import TLRUCache

from shared.logging import get_logger


ONE_MEGABYTE = 1024 * 1024
DEFAULT_MAX_BYTES = 40 * ONE_MEGABYTE
DEFAULT_POSITIVE_TTL = 60.0
NEGATIVE_TTL_FACTOR = 5

# Stored for confirmed absences. Positive payloads are serialized JSON
# objects or arrays, so they are never empty.
NOT_FOUND = ""


class CacheEntry(NamedTuple):
    value: str
    ttl: float
    stored_at: float


def _entry_size(entry: CacheEntry) -> int:
    return len(entry.value.encode("utf-8"))


def _entry_expiry(key: str, entry: CacheEntry, now: float) -> float:
    return now + entry.ttl


class RegistryCache:
    """Byte-bounded LRU cache with a TTL per entry.

    Entries past their TTL read as absent even before they are evicted. When
    the total stored size passes ``max_bytes`` the least recently used
    entries are dropped first.
    """

    def __init__(
        self,
        max_bytes: int = DEFAULT_MAX_BYTES,
        positive_ttl: float = DEFAULT_POSITIVE_TTL,
        *,
        timer: Callable[[], float] = time.monotonic,
    ):
        if positive_ttl <= 0:
            raise ValueError("positive_ttl must be greater than zero")

        self.max_bytes = max_bytes
        self.positive_ttl = positive_ttl
        self.negative_ttl = positive_ttl * NEGATIVE_TTL_FACTOR
        self.logger = get_logger("gateway.registry_cache")

        self._timer = timer
        self._entries = TLRUCache(
            maxsize=max_bytes,
            ttu=_entry_expiry,
            timer=timer,
            getsizeof=_entry_size,
        )
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[str]:
        """Return the stored value, ``NOT_FOUND`` for a cached absence, or None."""
        with self._lock:
            entry = self._entries.get(key)
        return None if entry is None else entry.value

    def set(self, key: str, value: str, ttl: float) -> bool:
        """Store a value for ``ttl`` seconds. Returns False if it was not stored."""
        if ttl <= 0:
            return False

        entry = CacheEntry(value=value, ttl=ttl, stored_at=self._timer())
        with self._lock:
            try:
                self._entries[key] = entry
            except ValueError:
                # Larger than the whole cache; drop any older value for the key
                self._entries.pop(key, None)
                self.logger.debug("Cache value too large, not stored", key=key, size=_entry_size(entry))
                return False
        return True

    def set_found(self, key: str, payload: str) -> bool:
        return self.set(key, payload, self.positive_ttl)

    def set_not_found(self, key: str) -> bool:
        return self.set(key, NOT_FOUND, self.negative_ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            self._entries.expire()
            return {
                "entries": len(self._entries),
                "bytes": self._entries.currsize,
                "max_bytes": self.max_bytes,
                "positive_ttl_seconds": self.positive_ttl,
                "negative_ttl_seconds": self.negative_ttl,
            }

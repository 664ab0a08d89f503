"""
In-memory TTL cache for parsed lookup results.

Negative results (None, empty lists) are cached like any other payload so a
failed lookup is not retried against the site until its entry expires.
Payloads are deep-copied on the way in and out, so a record handed to a
caller never aliases the cached one.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

SEARCH_TTL_S = 5 * 60
DETAIL_TTL_S = 30 * 60


@dataclass
class CacheEntry:
    """One cached payload with its absolute expiry time."""
    key: str
    payload: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


def cache_key(operation: str, argument: str) -> str:
    """Build a cache key from an operation name and its argument."""
    return f"{operation}_{(argument or '').strip()}"


class ResultCache:
    """
    Thread-safe TTL cache keyed by operation + argument.

    get() returns ``(value, hit)`` so a cached ``None`` is distinguishable
    from a miss.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Tuple[Any, bool]:
        """Get a cached payload. Expired entries are dropped on access."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None, False

            if entry.is_expired(self._clock()):
                del self._entries[key]
                self.misses += 1
                logger.debug("Cache expired: %s", key)
                return None, False

            self.hits += 1
            payload = entry.payload
        return copy.deepcopy(payload), True

    def set(self, key: str, value: Any, ttl_s: float) -> None:
        """Cache a payload for ``ttl_s`` seconds."""
        payload = copy.deepcopy(value)
        with self._lock:
            self._entries[key] = CacheEntry(
                key=key,
                payload=payload,
                expires_at=self._clock() + ttl_s,
            )
        logger.debug("Cache set: %s (ttl %ss)", key, ttl_s)

    def clear(self) -> int:
        """Clear the cache. Returns number of entries deleted."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def stats(self) -> dict:
        """Get cache statistics."""
        with self._lock:
            return {
                "entries": len(self._entries),
                "hits": self.hits,
                "misses": self.misses,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        _, hit = self.get(key)
        return hit

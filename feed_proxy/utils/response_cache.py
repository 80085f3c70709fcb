"""In-memory response cache with per-entry TTL and LRU eviction.

Entries expire lazily: an expired entry is dropped the next time it is read,
there is no background sweep. Capacity eviction is strict LRU and ignores
remaining TTL. Every hit and every set counts as a use.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable
from urllib.parse import quote

from feed_proxy.schemas.proxy import JobResult

logger = logging.getLogger(__name__)

TIMELINE_DEFAULT_CURSOR = "last"


@dataclass
class CacheItem:
    """Container for cached values with expiration metadata."""

    value: JobResult
    expires_at: float


class ResponseCache:
    """Thread-safe, in-memory cache of upstream results.

    Attributes:
        max_entries: Maximum number of cached items (None for unlimited).
    """

    def __init__(
        self,
        max_entries: int | None = 100_000,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1")

        self._max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, CacheItem] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"ResponseCache(max_entries={self._max_entries}, size={len(self._store)}, "
            f"hits={self._hits}, misses={self._misses}, evictions={self._evictions})"
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def get(self, key: str) -> JobResult | None:
        """Return the live entry for ``key`` and mark it most recently used.

        Args:
            key: Cache key.

        Returns:
            Cached result, or None if absent or expired.
        """

        with self._lock:
            item = self._store.get(key)
            if item is None:
                self._misses += 1
                logger.debug("cache.miss", extra={"cache_key": key, "reason": "not_found"})
                return None

            if self._clock() >= item.expires_at:
                del self._store[key]
                self._expirations += 1
                self._misses += 1
                logger.debug("cache.miss", extra={"cache_key": key, "reason": "expired"})
                return None

            self._hits += 1
            self._store.move_to_end(key)
            logger.debug("cache.hit", extra={"cache_key": key, "status": item.value.status})
            return item.value

    def set(self, key: str, value: JobResult, ttl_seconds: float) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``.

        Replacing an existing key refreshes both its TTL and its recency.
        When the cache is full the least recently used entry is evicted.

        Args:
            key: Cache key.
            value: Result to store.
            ttl_seconds: Time-to-live for this entry.
        """

        with self._lock:
            self._store[key] = CacheItem(value=value, expires_at=self._clock() + ttl_seconds)
            self._store.move_to_end(key)
            self._evict_if_over_capacity_locked()

            logger.debug(
                "cache.set",
                extra={
                    "cache_key": key,
                    "status": value.status,
                    "size": len(self._store),
                    "ttl_s": ttl_seconds,
                },
            )

    def clear(self) -> None:
        """Remove all cached entries and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            self._expirations = 0

    def stats(self) -> dict[str, int | None]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "expirations": self._expirations,
            }

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            key, _ = self._store.popitem(last=False)
            self._evictions += 1
            logger.debug("cache.evicted", extra={"cache_key": key})


def _component(value: str) -> str:
    # Percent-encode so identifiers can never contain the ":" separator
    return quote(value, safe="")


def user_key(username: str) -> str:
    return f"usernames:{_component(username)}"


def timeline_key(user_id: str, cursor: str | None = None) -> str:
    """Key for one page of a user's timeline; no cursor means the latest page.

    Explicit cursors are tagged so that a literal cursor value equal to the
    sentinel does not share an entry with the latest page.
    """

    page = TIMELINE_DEFAULT_CURSOR if cursor is None else f"cursor={_component(cursor)}"
    return f"users:{_component(user_id)}:tweets:{page}"


def post_key(post_id: str) -> str:
    return f"tweets:{_component(post_id)}"

"""Reasoning cache.

The clustering engine re-runs every few minutes over a sliding window, so the
same bucket of signals is often reasoned over more than once. ReasoningCache
memoizes ReasoningResults for a short TTL, keyed by the signal set's content
rather than by signal IDs.

It is an in-process dict with no locking: concurrent writes to the same key
are last-write-wins, which is harmless because the values are equivalent.
One instance is created by the composition root and injected into the
orchestrator.
"""

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Callable

from schemas.reasoning import ReasoningResult
from schemas.signal import Signal

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


@dataclass
class CacheEntry:
    result: ReasoningResult
    timestamp: float


def make_cache_key(city: str, event_type: str, signals: list[Signal]) -> str:
    """Build a cache key that ignores signal order.

    Format: reasoning:{city}:{event_type}:{hash}, where hash is the first 16
    hex characters of the MD5 of the sorted "source:text" pairs joined by "|".
    """
    pairs = sorted(f"{s.source}:{s.text}" for s in signals)
    digest = hashlib.md5("|".join(pairs).encode("utf-8")).hexdigest()[:16]
    return f"reasoning:{city}:{event_type}:{digest}"


class ReasoningCache:
    """TTL map from cache key to ReasoningResult.

    Expired entries are dropped lazily on get() and in bulk by cleanup().

    Attributes:
        ttl_seconds: Entry lifetime.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic) -> None:
        """Create an empty cache.

        Args:
            ttl_seconds: Entry lifetime in seconds.
            clock: Returns the current time in seconds. Injected by tests.
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> ReasoningResult | None:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if self._is_expired(entry):
            del self._entries[key]
            self._misses += 1
            logger.debug("Cache expired: %s", key)
            return None
        self._hits += 1
        logger.debug("Cache hit: %s", key)
        return entry.result

    def set(self, key: str, result: ReasoningResult) -> None:
        self._entries[key] = CacheEntry(result=result, timestamp=self._clock())
        logger.debug("Cached: %s", key)

    def clear(self) -> None:
        self._entries.clear()

    def cleanup(self) -> int:
        """Remove every expired entry. Returns how many were removed."""
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Cache cleanup removed %d expired entries", len(expired))
        return len(expired)

    def stats(self) -> dict:
        return {
            "size": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "ttl_seconds": self.ttl_seconds,
        }

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.timestamp > self.ttl_seconds

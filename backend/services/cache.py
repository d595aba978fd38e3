"""
In-process TTL cache for aggregation results.

One TTLCache instance is created by the API layer and handed to the routes
through a FastAPI dependency, so tests can swap in their own instance.

Contract:
  - get() returns None for missing or expired keys; expired keys are evicted on access
  - set() evicts the oldest entry when the cache is full; maxsize <= 0 stores nothing
  - wrap(key, compute) returns (value, hit) and only calls compute() on a miss
  - compute() errors propagate and nothing is cached
"""

import json
import logging
import threading
import time
from datetime import date, datetime
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class TTLCache:
    """Simple TTL cache with max size limit."""

    def __init__(
        self,
        maxsize: int = 500,
        ttl: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._cache: dict[str, tuple[Any, float]] = {}
        self._maxsize = maxsize
        self._ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            value, stored_at = entry
            if self._clock() - stored_at < self._ttl:
                return value
            del self._cache[key]
            return None

    def set(self, key: str, value: Any) -> None:
        # maxsize <= 0 disables caching
        if self._maxsize <= 0:
            return
        with self._lock:
            if key not in self._cache and len(self._cache) >= self._maxsize:
                oldest_key = min(self._cache, key=lambda k: self._cache[k][1])
                del self._cache[oldest_key]
            self._cache[key] = (value, self._clock())

    def wrap(self, key: str, compute: Callable[[], Any]) -> tuple[Any, bool]:
        """
        Return the cached value for key, computing and storing it on a miss.

        Two concurrent misses on the same key may both compute; the last
        writer wins. Results are deterministic so either value is correct.
        """
        cached = self.get(key)
        if cached is not None:
            with self._lock:
                self._hits += 1
            return cached, True

        with self._lock:
            self._misses += 1
        value = compute()
        self.set(key, value)
        return value, False

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
        logger.info("Aggregation cache cleared")

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "size": len(self._cache),
                "maxsize": self._maxsize,
                "ttl": self._ttl,
                "hits": self._hits,
                "misses": self._misses,
            }


# ===========================================================================
# Cache keys
# ===========================================================================

def _normalize_cache_value(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [_normalize_cache_value(v) for v in value]
        return sorted(items, key=str) if isinstance(value, (set, frozenset)) else items
    if isinstance(value, dict):
        return {k: _normalize_cache_value(v) for k, v in sorted(value.items())}
    return value


def build_cache_key(prefix: str, params: dict[str, Any]) -> str:
    """
    Stable cache key: empty params are skipped and keys are sorted.

    build_cache_key("regions", {"gender": "F", "region": None})
      → 'regions:{"gender": "F"}'
    """
    filtered = {
        key: _normalize_cache_value(value)
        for key, value in params.items()
        if not _is_empty(value)
    }
    return f"{prefix}:{json.dumps(filtered, sort_keys=True)}"


def _is_empty(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, (str, list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return False

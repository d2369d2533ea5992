"""
Process-local TTL cache for derived metric snapshots.

Entries expire a fixed time after they are written and are never
invalidated by writes. The clock is injectable so tests can move time
forward without sleeping.
"""

import time
import copy
import asyncio
import logging
from typing import Any, Optional, Dict, Callable
from collections import OrderedDict

logger = logging.getLogger(__name__)


class TTLCache:
    """Coroutine-safe LRU cache with per-entry expiry."""

    def __init__(
        self,
        ttl_seconds: int = 60,
        max_size: int = 1000,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self.enabled = enabled
        self.clock = clock
        self.cache: "OrderedDict[str, tuple[Any, float]]" = OrderedDict()
        self.lock = asyncio.Lock()
        self.stats = {
            "hits": 0,
            "misses": 0,
            "evictions": 0,
            "expirations": 0
        }

    async def get(self, key: str) -> Optional[Any]:
        """Get a copy of the cached value, or None on miss or expiry."""
        if not self.enabled:
            return None

        async with self.lock:
            if key not in self.cache:
                self.stats["misses"] += 1
                return None

            value, expiry_time = self.cache[key]

            if self.clock() >= expiry_time:
                del self.cache[key]
                self.stats["expirations"] += 1
                self.stats["misses"] += 1
                return None

            self.cache.move_to_end(key)
            self.stats["hits"] += 1
            return copy.deepcopy(value)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store a snapshot of value."""
        if not self.enabled:
            return

        async with self.lock:
            ttl = ttl or self.ttl_seconds
            expiry_time = self.clock() + ttl

            # Remove oldest items if at capacity
            while key not in self.cache and len(self.cache) >= self.max_size:
                oldest_key = next(iter(self.cache))
                del self.cache[oldest_key]
                self.stats["evictions"] += 1

            self.cache[key] = (copy.deepcopy(value), expiry_time)
            self.cache.move_to_end(key)

    async def invalidate_expired(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        async with self.lock:
            now = self.clock()
            expired = [
                key for key, (_, expiry_time) in self.cache.items()
                if now >= expiry_time
            ]
            for key in expired:
                del self.cache[key]
            self.stats["expirations"] += len(expired)

        if expired:
            logger.debug(f"Expired {len(expired)} cached metric snapshots")
        return len(expired)

    async def clear(self) -> None:
        """Clear all cache entries."""
        async with self.lock:
            self.cache.clear()

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_requests = self.stats["hits"] + self.stats["misses"]
        hit_rate = (
            (self.stats["hits"] / total_requests * 100)
            if total_requests > 0
            else 0
        )

        return {
            **self.stats,
            "size": len(self.cache),
            "max_size": self.max_size,
            "ttl_seconds": self.ttl_seconds,
            "enabled": self.enabled,
            "hit_rate": f"{hit_rate:.2f}%"
        }

"""
Short-TTL cache used by search results and live supplier lookups.

The cache is a side channel, never a source of truth: every read or write failure is
reported as CacheError so callers can warn and fall through to the store or live API.
"""
import asyncio
import copy
import logging
import time
from typing import Any, Dict, Optional, Protocol, Tuple

from apparel_catalog.exceptions import CacheError

logger = logging.getLogger(__name__)


class CacheClient(Protocol):
    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class InMemoryTTLCache:
    """
    Process-local cache with per-key expiry. Values are deep-copied in and out.

    Expired entries are swept on write at most once per sweep_interval, and the
    entry count is capped at max_entries by evicting the soonest-expiring keys.
    """

    def __init__(self, clock=time.monotonic, max_entries: int = 10_000, sweep_interval: float = 30.0):
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        self.max_entries = max_entries
        self.sweep_interval = sweep_interval
        self._next_sweep_at = 0.0

    def _sweep(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._next_sweep_at = now + self.sweep_interval
        if expired:
            logger.debug(f"[CACHE] Swept {len(expired)} expired entries")

    def _evict_overflow(self) -> None:
        overflow = len(self._entries) - self.max_entries
        if overflow <= 0:
            return
        victims = sorted(self._entries, key=lambda key: self._entries[key][0])[:overflow]
        for key in victims:
            del self._entries[key]
        logger.debug(f"[CACHE] Evicted {len(victims)} entries over the {self.max_entries} limit")

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return copy.deepcopy(value)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise CacheError(f"TTL must be positive, got {ttl_seconds}", key=key, operation="set")
        async with self._lock:
            now = self._clock()
            if now >= self._next_sweep_at:
                self._sweep(now)
            self._entries[key] = (now + ttl_seconds, copy.deepcopy(value))
            self._evict_overflow()

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


async def cache_get(cache: Optional[CacheClient], key: str, tag: str = "CACHE") -> Optional[Any]:
    """Read through a cache; failures are logged and treated as a miss."""
    if cache is None:
        return None
    try:
        return await cache.get(key)
    except Exception as e:
        logger.warning(f"[{tag}] Cache read failed for {key}: {e}")
        return None


async def cache_set(cache: Optional[CacheClient], key: str, value: Any, ttl_seconds: int, tag: str = "CACHE") -> bool:
    if cache is None:
        return False
    try:
        await cache.set(key, value, ttl_seconds)
        return True
    except Exception as e:
        logger.warning(f"[{tag}] Cache write failed for {key}: {e}")
        return False

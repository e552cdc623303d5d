import math
import time
import fnmatch
from typing import Any, Optional, Dict
from dataclasses import dataclass

from .interface import CacheInterface, CacheStats, VersionedValue, DEFAULT_TTL
from .redis_cache import version_key
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    """Represents a cached entry with expiration."""

    value: Any
    expires_at: Optional[float] = None

    def is_expired(self) -> bool:
        """Check if this entry has expired."""
        if self.expires_at is None:
            return False
        return time.time() > self.expires_at


def _expiry(ttl: Optional[int]) -> Optional[float]:
    return time.time() + ttl if ttl else None


class MemoryCache(CacheInterface):
    """
    In-process cache with the same semantics as RedisCache.

    Used for tests and single-process development. No method awaits between
    reading and writing an entry, so set_with_version and increment are
    atomic with respect to other tasks on the loop.
    """

    def __init__(self):
        self._cache: Dict[str, CacheEntry] = {}
        logger.info("Memory cache provider initialized")

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        if entry.is_expired():
            del self._cache[key]
            return None
        return entry

    def _cleanup_expired(self) -> None:
        expired_keys = [key for key, entry in self._cache.items() if entry.is_expired()]
        for key in expired_keys:
            del self._cache[key]

    async def get(self, key: str) -> Optional[Any]:
        entry = self._live_entry(key)
        return entry.value if entry else None

    async def set(self, key: str, value: Any, ttl: Optional[int] = DEFAULT_TTL) -> bool:
        self._cache[key] = CacheEntry(value=value, expires_at=_expiry(ttl))
        logger.debug(f"Cached key {key} with TTL {ttl}")
        return True

    async def delete(self, key: str) -> bool:
        if self._live_entry(key) is None:
            return False
        del self._cache[key]
        logger.debug(f"Deleted cache key {key}")
        return True

    async def delete_pattern(self, pattern: str) -> int:
        self._cleanup_expired()
        matching_keys = [key for key in self._cache if fnmatch.fnmatchcase(key, pattern)]
        for key in matching_keys:
            del self._cache[key]

        logger.info(
            f"Deleted {len(matching_keys)} cache keys matching pattern {pattern}",
            extra={"pattern": pattern, "count": len(matching_keys)},
        )
        return len(matching_keys)

    async def increment(self, key: str, ttl: int = DEFAULT_TTL) -> int:
        entry = self._live_entry(key)
        if entry is None:
            self._cache[key] = CacheEntry(value=1, expires_at=_expiry(ttl))
            return 1
        entry.value = int(entry.value) + 1
        return entry.value

    async def get_with_version(self, key: str) -> VersionedValue:
        version_entry = self._live_entry(version_key(key))
        return VersionedValue(
            data=await self.get(key),
            version=int(version_entry.value) if version_entry else 0,
        )

    async def set_with_version(
        self, key: str, value: Any, expected_version: int, ttl: int = DEFAULT_TTL
    ) -> bool:
        version_entry = self._live_entry(version_key(key))
        current_version = int(version_entry.value) if version_entry else 0
        if current_version != expected_version:
            return False

        self._cache[key] = CacheEntry(value=value, expires_at=_expiry(ttl))
        self._cache[version_key(key)] = CacheEntry(
            value=current_version + 1, expires_at=_expiry(ttl)
        )
        return True

    async def invalidate_version(self, key: str) -> None:
        entry = self._live_entry(version_key(key))
        current_version = int(entry.value) if entry else 0
        self._cache[version_key(key)] = CacheEntry(
            value=current_version + 1, expires_at=_expiry(DEFAULT_TTL)
        )

    async def get_ttl(self, key: str) -> int:
        entry = self._live_entry(key)
        if entry is None:
            return -2
        if entry.expires_at is None:
            return -1
        return max(0, math.ceil(entry.expires_at - time.time()))

    async def exists(self, key: str) -> bool:
        return self._live_entry(key) is not None

    async def clear_all(self) -> bool:
        self._cache.clear()
        logger.info("Cleared all cache data")
        return True

    async def get_stats(self) -> CacheStats:
        self._cleanup_expired()
        return CacheStats(
            available=True, keys=len(self._cache), info={"backend": "memory"}
        )

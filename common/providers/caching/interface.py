from abc import ABC, abstractmethod
from typing import Any, Optional

from pydantic import BaseModel, Field

# Seconds; matches the version-key lifetime used by invalidate_version
DEFAULT_TTL = 3600


class VersionedValue(BaseModel):
    """A cached value together with the version it was read at."""

    data: Optional[Any] = None
    version: int = 0


class CacheStats(BaseModel):
    """Snapshot of the cache backend for health endpoints."""

    available: bool
    keys: int = 0
    info: dict[str, Any] = Field(default_factory=dict)


class CacheInterface(ABC):
    """
    Interface for cache providers.

    Every implementation fails open: when the backing store is unavailable
    reads return their empty value, writes are skipped, and nothing raises.
    Callers must treat the cache as derived state only.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """
        Get a value from cache.

        Args:
            key: The cache key

        Returns:
            The cached value if exists, None otherwise
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = DEFAULT_TTL) -> bool:
        """
        Set a value in cache.

        Args:
            key: The cache key
            value: JSON-serialisable value
            ttl: Time to live in seconds, None for no expiry

        Returns:
            True if set successfully, False otherwise
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key. Returns True if a key was removed."""
        pass

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a glob pattern.

        Args:
            pattern: Glob pattern (e.g., "*:feature-access:user_1:*")

        Returns:
            Number of keys deleted
        """
        pass

    @abstractmethod
    async def increment(self, key: str, ttl: int = DEFAULT_TTL) -> int:
        """
        Increment a counter, applying ttl only when the counter is created.

        Returns:
            The new counter value, 0 if the store is unavailable
        """
        pass

    @abstractmethod
    async def get_with_version(self, key: str) -> VersionedValue:
        """Read a value and its version counter (0 when never written)."""
        pass

    @abstractmethod
    async def set_with_version(
        self, key: str, value: Any, expected_version: int, ttl: int = DEFAULT_TTL
    ) -> bool:
        """
        Compare-and-swap write.

        Writes value and bumps the version only if the stored version still
        equals expected_version; the check, write and bump are one atomic step.

        Returns:
            True if written, False on version mismatch or store failure
        """
        pass

    @abstractmethod
    async def invalidate_version(self, key: str) -> None:
        """Bump the version so any writer holding an older one loses its CAS."""
        pass

    @abstractmethod
    async def get_ttl(self, key: str) -> int:
        """Remaining TTL in seconds; -1 for no expiry, -2 for missing key."""
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """
        Check if a key exists in cache.

        Args:
            key: The cache key to check

        Returns:
            True if key exists, False otherwise
        """
        pass

    @abstractmethod
    async def clear_all(self) -> bool:
        """Clear all cached data."""
        pass

    @abstractmethod
    async def get_stats(self) -> CacheStats:
        """Report availability and key count."""
        pass

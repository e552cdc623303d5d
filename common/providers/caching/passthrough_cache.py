from typing import Any, Optional

from .interface import CacheInterface, CacheStats, VersionedValue, DEFAULT_TTL
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


class PassthroughCache(CacheInterface):
    """
    Cache that stores nothing (for disabling cache).

    Behaves exactly like an unavailable Redis: every read misses, every write
    reports failure, so callers fall through to the database.
    """

    def __init__(self):
        logger.info("Passthrough cache provider initialized (caching disabled)")

    async def get(self, key: str) -> Optional[Any]:
        return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = DEFAULT_TTL) -> bool:
        return False

    async def delete(self, key: str) -> bool:
        return False

    async def delete_pattern(self, pattern: str) -> int:
        return 0

    async def increment(self, key: str, ttl: int = DEFAULT_TTL) -> int:
        return 0

    async def get_with_version(self, key: str) -> VersionedValue:
        return VersionedValue()

    async def set_with_version(
        self, key: str, value: Any, expected_version: int, ttl: int = DEFAULT_TTL
    ) -> bool:
        return False

    async def invalidate_version(self, key: str) -> None:
        return None

    async def get_ttl(self, key: str) -> int:
        return -2

    async def exists(self, key: str) -> bool:
        return False

    async def clear_all(self) -> bool:
        return True

    async def get_stats(self) -> CacheStats:
        return CacheStats(available=False)

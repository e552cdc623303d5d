from typing import Optional

from common.core.config import settings
from common.core.constants import CacheProviderType
from common.core.otel_axiom_exporter import get_logger

from .interface import DistributedLockInterface
from .memory_lock import MemoryLock
from .redis_lock import RedisLock

logger = get_logger(__name__)

# Global instance
_lock_provider: Optional[DistributedLockInterface] = None


def get_lock_provider() -> DistributedLockInterface:
    """
    Get the configured distributed lock provider.

    Locks live in the same store as the cache, so the in-memory lock is used
    only when the cache itself is configured in-memory.
    """
    global _lock_provider

    if _lock_provider is None:
        if settings.cache_provider == CacheProviderType.MEMORY:
            _lock_provider = MemoryLock()
            logger.info("Initialized in-memory lock provider")
        else:
            _lock_provider = RedisLock()
            logger.info("Initialized Redis lock provider")

    return _lock_provider

import time
import uuid
from typing import Dict, Optional, Tuple

from .interface import DistributedLockInterface
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


class MemoryLock(DistributedLockInterface):
    """
    In-process lock with the same contract as RedisLock.

    Only excludes tasks within one process; for tests and local development.
    """

    def __init__(self):
        # resource_key -> (token, expires_at)
        self._locks: Dict[str, Tuple[str, float]] = {}

    def _holder(self, resource_key: str) -> Optional[str]:
        held = self._locks.get(resource_key)
        if held is None:
            return None
        token, expires_at = held
        if time.monotonic() >= expires_at:
            del self._locks[resource_key]
            return None
        return token

    async def acquire_lock(self, resource_key: str, ttl_ms: int) -> Optional[str]:
        if self._holder(resource_key) is not None:
            return None
        token = str(uuid.uuid4())
        self._locks[resource_key] = (token, time.monotonic() + ttl_ms / 1000)
        logger.debug(f"Acquired lock for {resource_key}")
        return token

    async def release_lock(self, resource_key: str, lock_token: str) -> bool:
        if self._holder(resource_key) != lock_token:
            return False
        del self._locks[resource_key]
        return True

    async def is_locked(self, resource_key: str) -> bool:
        return self._holder(resource_key) is not None

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, TypeVar

from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class DistributedLockInterface(ABC):
    """Interface for distributed lock providers."""

    @abstractmethod
    async def acquire_lock(self, resource_key: str, ttl_ms: int) -> Optional[str]:
        """
        Try once to acquire a lock for a resource.

        Args:
            resource_key: The resource to lock (e.g., "stripe-customer-user_1")
            ttl_ms: Lock expiration in milliseconds; a crashed holder's lock
                disappears after this

        Returns:
            Lock token if acquired, None if held elsewhere or the store failed
        """
        pass

    @abstractmethod
    async def release_lock(self, resource_key: str, lock_token: str) -> bool:
        """
        Release a lock if lock_token still owns it.

        Returns:
            True if released, False if token doesn't match or lock expired
        """
        pass

    @abstractmethod
    async def is_locked(self, resource_key: str) -> bool:
        """Check if a resource is currently locked."""
        pass

    async def execute_with_lock(
        self, resource_key: str, ttl_ms: int, fn: Callable[[], Awaitable[T]]
    ) -> Optional[T]:
        """
        Run fn while holding the lock for resource_key.

        Makes a single acquisition attempt. When the lock is not acquired,
        returns None without running fn and the caller decides whether to
        wait, re-read, or degrade. Exceptions from fn propagate after the
        lock is released.

        Args:
            resource_key: The resource to lock
            ttl_ms: Lock TTL; must exceed the critical section with margin
            fn: Zero-argument coroutine function to run under the lock

        Returns:
            fn's result, or None if the lock was not acquired
        """
        token = await self.acquire_lock(resource_key, ttl_ms)
        if token is None:
            logger.info(
                f"Skipping {resource_key} - lock held by another instance",
                extra={"resource_key": resource_key},
            )
            return None

        try:
            return await fn()
        finally:
            await self.release_lock(resource_key, token)

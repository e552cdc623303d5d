"""Fixed-window rate limiter on top of the shared cache.

Each window is a single counter created by INCR, whose TTL is set on the
first hit, so all API pods share one count per key.
"""

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel

from common.core.otel_axiom_exporter import get_logger
from common.providers.caching.interface import CacheInterface

logger = get_logger(__name__)


class RateLimitResult(BaseModel):
    allowed: bool
    remaining: int
    reset_at: datetime


def rate_limit_key(key: str) -> str:
    return f"ratelimit:{key}"


class RateLimiter:
    def __init__(self, cache: CacheInterface):
        self.cache = cache

    async def check_rate_limit(
        self, key: str, max_attempts: int, window_seconds: int
    ) -> RateLimitResult:
        """
        Count one attempt against key and report whether it is allowed.

        When the cache is unavailable the counter reads 0 and the attempt is
        allowed.
        """
        now = datetime.now(timezone.utc)
        cache_key = rate_limit_key(key)
        count = await self.cache.increment(cache_key, ttl=window_seconds)

        if count == 0:
            return RateLimitResult(
                allowed=True,
                remaining=max_attempts - 1,
                reset_at=now + timedelta(seconds=window_seconds),
            )

        ttl = await self.cache.get_ttl(cache_key)
        reset_at = now + timedelta(seconds=ttl if ttl > 0 else window_seconds)

        if count > max_attempts:
            logger.warning(
                f"Rate limit exceeded for {key}",
                extra={"key": key, "count": count, "max_attempts": max_attempts},
            )
            return RateLimitResult(allowed=False, remaining=0, reset_at=reset_at)

        return RateLimitResult(
            allowed=True, remaining=max_attempts - count, reset_at=reset_at
        )

    async def reset_rate_limit(self, key: str) -> None:
        await self.cache.delete(rate_limit_key(key))

    async def get_remaining_attempts(self, key: str, max_attempts: int) -> int:
        count = await self.cache.get(rate_limit_key(key))
        if count is None:
            return max_attempts
        return max(0, max_attempts - int(count))

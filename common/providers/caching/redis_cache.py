import json
from typing import Any, Optional
import redis.asyncio as redis

from common.core.config import settings
from .interface import CacheInterface, CacheStats, VersionedValue, DEFAULT_TTL
from common.core.otel_axiom_exporter import (
    get_logger,
    trace_span,
    create_span_with_context,
)

logger = get_logger(__name__)

# Keys examined per SCAN round trip
SCAN_BATCH_SIZE = 100
# Max keys per DEL call while deleting by pattern
DELETE_BATCH_SIZE = 1000

# KEYS[1]=value key, KEYS[2]=version key, ARGV = expected version, payload, ttl
SET_WITH_VERSION_SCRIPT = """
local current_version = redis.call('GET', KEYS[2])
if current_version == false then
  current_version = '0'
end

if tonumber(current_version) == tonumber(ARGV[1]) then
  redis.call('SETEX', KEYS[1], ARGV[3], ARGV[2])
  redis.call('SETEX', KEYS[2], ARGV[3], tostring(tonumber(current_version) + 1))
  return 1
else
  return 0
end
"""


def version_key(key: str) -> str:
    return f"{key}:version"


class RedisCache(CacheInterface):
    """Redis-backed cache. Every operation fails open."""

    def __init__(self):
        self.host = settings.redis_host
        self.port = settings.redis_port
        self.password = settings.redis_password
        self.db = settings.redis_db
        self._client: Optional[redis.Redis] = None
        self._connected = False

    @trace_span
    async def connect(self) -> bool:
        """Connect to Redis."""
        try:
            self._client = redis.Redis(
                host=self.host,
                port=self.port,
                password=self.password,
                db=self.db,
                decode_responses=True,
            )
            # Test connection
            await self._client.ping()
            self._connected = True
            logger.info("Redis cache provider connected")
            return True
        except Exception as e:
            logger.error(f"Failed to connect to Redis cache: {e}")
            self._connected = False
            return False

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._client:
            await self._client.aclose()
            self._connected = False
            logger.info("Redis cache provider disconnected")

    async def _ensure_connected(self) -> bool:
        """Connect lazily; False means the caller should fail open."""
        if self._connected:
            return True
        return await self.connect()

    @trace_span
    async def get(self, key: str) -> Optional[Any]:
        """Get a value from cache."""
        if not await self._ensure_connected():
            return None

        try:
            value = await self._client.get(key)
            if value is None:
                return None
            return json.loads(value)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to deserialize cached value for key {key}: {e}")
            return None
        except Exception as e:
            logger.error(f"Error getting cache key {key}: {e}")
            return None

    @trace_span
    async def set(self, key: str, value: Any, ttl: Optional[int] = DEFAULT_TTL) -> bool:
        """Set a value in cache."""
        if not await self._ensure_connected():
            return False

        try:
            serialized_value = json.dumps(value, default=str)
            if ttl:
                success = await self._client.setex(key, ttl, serialized_value)
            else:
                success = await self._client.set(key, serialized_value)
            if success:
                logger.debug(f"Cached key {key} with TTL {ttl}")
            return bool(success)
        except Exception as e:
            logger.error(f"Error setting cache key {key}: {e}", extra={"ttl": ttl})
            return False

    @trace_span
    async def delete(self, key: str) -> bool:
        """Delete a specific key from cache."""
        if not await self._ensure_connected():
            return False

        try:
            deleted = await self._client.delete(key)
            if deleted:
                logger.debug(f"Deleted cache key {key}")
            return bool(deleted)
        except Exception as e:
            logger.error(f"Error deleting cache key {key}: {e}")
            return False

    @trace_span
    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a glob pattern.

        Walks the keyspace with cursor-based SCAN (never KEYS, which blocks the
        server) and deletes in batches of at most DELETE_BATCH_SIZE keys.
        """
        if not await self._ensure_connected():
            return 0

        deleted_count = 0
        try:
            cursor = 0
            pending: list[str] = []
            while True:
                cursor, keys = await self._client.scan(
                    cursor=cursor, match=pattern, count=SCAN_BATCH_SIZE
                )
                pending.extend(keys)

                if len(pending) >= DELETE_BATCH_SIZE:
                    deleted_count += await self._delete_batch(pending, pattern)
                    pending = []

                if int(cursor) == 0:
                    break

            if pending:
                deleted_count += await self._delete_batch(pending, pattern)

            return deleted_count
        except Exception as e:
            logger.error(f"Error deleting cache pattern {pattern}: {e}")
            return deleted_count

    async def _delete_batch(self, keys: list[str], pattern: str) -> int:
        with create_span_with_context(
            "delete_batch", attributes={"cache.batch_size": len(keys)}
        ):
            deleted = 0
            for start in range(0, len(keys), DELETE_BATCH_SIZE):
                deleted += await self._client.delete(
                    *keys[start : start + DELETE_BATCH_SIZE]
                )
            logger.info(
                f"Deleted {deleted} cache keys matching pattern {pattern}",
                extra={"pattern": pattern, "count": deleted},
            )
            return deleted

    @trace_span
    async def increment(self, key: str, ttl: int = DEFAULT_TTL) -> int:
        """Increment a counter; the TTL is applied only on the first increment."""
        if not await self._ensure_connected():
            return 0

        try:
            count = await self._client.incr(key)
            if count == 1:
                await self._client.expire(key, ttl)
            return count
        except Exception as e:
            logger.error(f"Error incrementing cache key {key}: {e}")
            return 0

    @trace_span
    async def get_with_version(self, key: str) -> VersionedValue:
        if not await self._ensure_connected():
            return VersionedValue()

        try:
            cached, version = await self._client.mget([key, version_key(key)])
            return VersionedValue(
                data=json.loads(cached) if cached is not None else None,
                version=int(version) if version is not None else 0,
            )
        except Exception as e:
            logger.error(f"Error getting versioned cache key {key}: {e}")
            return VersionedValue()

    @trace_span
    async def set_with_version(
        self, key: str, value: Any, expected_version: int, ttl: int = DEFAULT_TTL
    ) -> bool:
        """Atomic compare-and-swap implemented as one server-side Lua script."""
        if not await self._ensure_connected():
            return False

        try:
            result = await self._client.eval(
                SET_WITH_VERSION_SCRIPT,
                2,
                key,
                version_key(key),
                str(expected_version),
                json.dumps(value, default=str),
                str(ttl),
            )
            if int(result) != 1:
                logger.debug(
                    f"Version mismatch writing cache key {key}",
                    extra={"expected_version": expected_version},
                )
                return False
            return True
        except Exception as e:
            logger.error(f"Error setting versioned cache key {key}: {e}")
            return False

    @trace_span
    async def invalidate_version(self, key: str) -> None:
        if not await self._ensure_connected():
            return

        try:
            await self._client.incr(version_key(key))
            await self._client.expire(version_key(key), DEFAULT_TTL)
        except Exception as e:
            logger.error(f"Error invalidating version for cache key {key}: {e}")

    @trace_span
    async def get_ttl(self, key: str) -> int:
        if not await self._ensure_connected():
            return -2

        try:
            return await self._client.ttl(key)
        except Exception as e:
            logger.error(f"Error getting TTL for cache key {key}: {e}")
            return -2

    @trace_span
    async def exists(self, key: str) -> bool:
        """Check if a key exists in cache."""
        if not await self._ensure_connected():
            return False

        try:
            return bool(await self._client.exists(key))
        except Exception as e:
            logger.error(f"Error checking if cache key {key} exists: {e}")
            return False

    @trace_span
    async def clear_all(self) -> bool:
        """Clear all cached data in the configured database."""
        if not await self._ensure_connected():
            return False

        try:
            await self._client.flushdb()
            logger.info("Cleared all cache data")
            return True
        except Exception as e:
            logger.error(f"Error clearing cache: {e}")
            return False

    @trace_span
    async def get_stats(self) -> CacheStats:
        if not await self._ensure_connected():
            return CacheStats(available=False)

        try:
            info = await self._client.info("stats")
            keys = await self._client.dbsize()
            return CacheStats(available=True, keys=keys, info=info)
        except Exception as e:
            logger.error(f"Error reading cache stats: {e}")
            return CacheStats(available=False)

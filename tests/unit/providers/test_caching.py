import asyncio

import pytest
from unittest.mock import AsyncMock, patch
import redis.asyncio as redis

from common.core.constants import CacheProviderType
from common.providers.caching import factory as cache_factory
from common.providers.caching.memory_cache import MemoryCache
from common.providers.caching.passthrough_cache import PassthroughCache
from common.providers.caching.redis_cache import (
    DELETE_BATCH_SIZE,
    SCAN_BATCH_SIZE,
    RedisCache,
)


@pytest.fixture
def redis_cache():
    with patch("common.providers.caching.redis_cache.settings") as mock_settings:
        mock_settings.redis_host = "localhost"
        mock_settings.redis_port = 6379
        mock_settings.redis_password = None
        mock_settings.redis_db = 0
        return RedisCache()


@pytest.fixture
def mock_redis_client(redis_cache):
    client = AsyncMock(spec=redis.Redis)
    redis_cache._client = client
    redis_cache._connected = True
    return client


class TestRedisCache:
    """Unit tests for the Redis cache with a mocked client."""

    async def test_get_deserializes_json(self, redis_cache, mock_redis_client):
        mock_redis_client.get = AsyncMock(return_value='{"plan": "PRO"}')

        assert await redis_cache.get("key") == {"plan": "PRO"}

    async def test_get_miss(self, redis_cache, mock_redis_client):
        mock_redis_client.get = AsyncMock(return_value=None)

        assert await redis_cache.get("key") is None

    async def test_set_uses_setex(self, redis_cache, mock_redis_client):
        mock_redis_client.setex = AsyncMock(return_value=True)

        assert await redis_cache.set("key", False, ttl=60) is True
        mock_redis_client.setex.assert_called_once_with("key", 60, "false")

    async def test_increment_sets_ttl_on_first_hit_only(
        self, redis_cache, mock_redis_client
    ):
        mock_redis_client.incr = AsyncMock(side_effect=[1, 2])
        mock_redis_client.expire = AsyncMock(return_value=True)

        assert await redis_cache.increment("counter", ttl=60) == 1
        assert await redis_cache.increment("counter", ttl=60) == 2

        mock_redis_client.expire.assert_called_once_with("counter", 60)

    async def test_delete_pattern_scans_in_batches(self, redis_cache, mock_redis_client):
        """SCAN is walked to completion and keys are deleted in bounded batches."""
        first_page = [f"v1:feature-access:u1:{i}" for i in range(DELETE_BATCH_SIZE)]
        second_page = ["v1:feature-access:u1:last"]
        mock_redis_client.scan = AsyncMock(
            side_effect=[(42, first_page), (0, second_page)]
        )
        mock_redis_client.delete = AsyncMock(side_effect=lambda *keys: len(keys))
        mock_redis_client.keys = AsyncMock()

        deleted = await redis_cache.delete_pattern("*:feature-access:u1:*")

        assert deleted == DELETE_BATCH_SIZE + 1
        assert mock_redis_client.scan.call_count == 2
        first_call = mock_redis_client.scan.call_args_list[0]
        assert first_call.kwargs == {
            "cursor": 0,
            "match": "*:feature-access:u1:*",
            "count": SCAN_BATCH_SIZE,
        }
        assert mock_redis_client.scan.call_args_list[1].kwargs["cursor"] == 42
        assert mock_redis_client.delete.call_count == 2
        mock_redis_client.keys.assert_not_called()

    async def test_delete_pattern_no_matches(self, redis_cache, mock_redis_client):
        mock_redis_client.scan = AsyncMock(return_value=(0, []))
        mock_redis_client.delete = AsyncMock()

        assert await redis_cache.delete_pattern("nothing:*") == 0
        mock_redis_client.delete.assert_not_called()

    async def test_get_with_version(self, redis_cache, mock_redis_client):
        mock_redis_client.mget = AsyncMock(return_value=['{"a": 1}', "3"])

        versioned = await redis_cache.get_with_version("key")

        assert versioned.data == {"a": 1}
        assert versioned.version == 3
        mock_redis_client.mget.assert_called_once_with(["key", "key:version"])

    async def test_get_with_version_missing(self, redis_cache, mock_redis_client):
        mock_redis_client.mget = AsyncMock(return_value=[None, None])

        versioned = await redis_cache.get_with_version("key")

        assert versioned.data is None
        assert versioned.version == 0

    async def test_set_with_version_runs_script(self, redis_cache, mock_redis_client):
        mock_redis_client.eval = AsyncMock(return_value=1)

        assert await redis_cache.set_with_version("key", {"a": 1}, 2, ttl=300) is True

        args = mock_redis_client.eval.call_args[0]
        assert args[1:] == (2, "key", "key:version", "2", '{"a": 1}', "300")

    async def test_set_with_version_mismatch(self, redis_cache, mock_redis_client):
        mock_redis_client.eval = AsyncMock(return_value=0)

        assert await redis_cache.set_with_version("key", {"a": 1}, 0) is False

    async def test_invalidate_version(self, redis_cache, mock_redis_client):
        mock_redis_client.incr = AsyncMock(return_value=4)
        mock_redis_client.expire = AsyncMock(return_value=True)

        await redis_cache.invalidate_version("key")

        mock_redis_client.incr.assert_called_once_with("key:version")
        mock_redis_client.expire.assert_called_once_with("key:version", 3600)

    async def test_get_stats(self, redis_cache, mock_redis_client):
        mock_redis_client.info = AsyncMock(return_value={"keyspace_hits": 10})
        mock_redis_client.dbsize = AsyncMock(return_value=7)

        stats = await redis_cache.get_stats()

        assert stats.available is True
        assert stats.keys == 7
        assert stats.info == {"keyspace_hits": 10}


class TestRedisCacheFailOpen:
    """With Redis failing, every operation returns its safe default."""

    @pytest.fixture
    def failing_client(self, redis_cache):
        error = redis.ConnectionError("Connection refused")
        client = AsyncMock(spec=redis.Redis)
        for method in (
            "get",
            "set",
            "setex",
            "delete",
            "scan",
            "incr",
            "expire",
            "mget",
            "eval",
            "ttl",
            "exists",
            "flushdb",
            "info",
            "dbsize",
        ):
            setattr(client, method, AsyncMock(side_effect=error))
        redis_cache._client = client
        redis_cache._connected = True
        return client

    async def test_all_operations_fail_open(self, redis_cache, failing_client):
        assert await redis_cache.get("key") is None
        assert await redis_cache.set("key", 1) is False
        assert await redis_cache.delete("key") is False
        assert await redis_cache.delete_pattern("key*") == 0
        assert await redis_cache.increment("key") == 0
        versioned = await redis_cache.get_with_version("key")
        assert (versioned.data, versioned.version) == (None, 0)
        assert await redis_cache.set_with_version("key", 1, 0) is False
        assert await redis_cache.invalidate_version("key") is None
        assert await redis_cache.get_ttl("key") == -2
        assert await redis_cache.exists("key") is False
        assert await redis_cache.clear_all() is False
        stats = await redis_cache.get_stats()
        assert stats.available is False
        assert stats.keys == 0

    async def test_unreachable_redis_fails_open(self, redis_cache):
        with patch.object(redis_cache, "connect", AsyncMock(return_value=False)):
            assert await redis_cache.get("key") is None
            assert await redis_cache.increment("key") == 0
            assert await redis_cache.get_ttl("key") == -2


class TestMemoryCache:
    """The in-process cache mirrors Redis semantics."""

    async def test_set_get_delete(self, memory_cache):
        assert await memory_cache.set("key", {"a": 1}) is True
        assert await memory_cache.get("key") == {"a": 1}
        assert await memory_cache.delete("key") is True
        assert await memory_cache.get("key") is None
        assert await memory_cache.delete("key") is False

    async def test_expiry(self, memory_cache):
        await memory_cache.set("key", "value", ttl=1)
        with patch("common.providers.caching.memory_cache.time.time") as clock:
            clock.return_value = 10**12
            assert await memory_cache.get("key") is None

    async def test_ttl_conventions(self, memory_cache):
        assert await memory_cache.get_ttl("missing") == -2
        await memory_cache.set("forever", 1, ttl=None)
        assert await memory_cache.get_ttl("forever") == -1
        await memory_cache.set("short", 1, ttl=60)
        assert 0 < await memory_cache.get_ttl("short") <= 60

    async def test_increment_keeps_first_ttl(self, memory_cache):
        assert await memory_cache.increment("counter", ttl=60) == 1
        assert await memory_cache.increment("counter", ttl=5000) == 2
        assert await memory_cache.get_ttl("counter") <= 60

    async def test_delete_pattern(self, memory_cache):
        await memory_cache.set("v1:feature-access:u1:PRO", True)
        await memory_cache.set("v0:feature-access:u1:FREE", True)
        await memory_cache.set("v1:feature-access:u2:PRO", True)

        deleted = await memory_cache.delete_pattern("*:feature-access:u1:*")

        assert deleted == 2
        assert await memory_cache.exists("v1:feature-access:u2:PRO") is True

    async def test_versioned_write_requires_current_version(self, memory_cache):
        assert await memory_cache.set_with_version("key", "first", 0) is True
        versioned = await memory_cache.get_with_version("key")
        assert versioned.data == "first"
        assert versioned.version == 1

        assert await memory_cache.set_with_version("key", "stale", 0) is False
        assert await memory_cache.get("key") == "first"

    async def test_invalidate_version_defeats_pending_writer(self, memory_cache):
        versioned = await memory_cache.get_with_version("key")
        await memory_cache.invalidate_version("key")

        assert (
            await memory_cache.set_with_version("key", "stale", versioned.version)
            is False
        )

    async def test_concurrent_cas_exactly_one_wins(self, memory_cache):
        """Two writers at the same version: one succeeds and its value sticks."""
        versioned = await memory_cache.get_with_version("key")

        results = await asyncio.gather(
            memory_cache.set_with_version("key", "writer-a", versioned.version),
            memory_cache.set_with_version("key", "writer-b", versioned.version),
        )

        assert sorted(results) == [False, True]
        winner = "writer-a" if results[0] else "writer-b"
        assert await memory_cache.get("key") == winner

    async def test_stats(self, memory_cache):
        await memory_cache.set("a", 1)
        stats = await memory_cache.get_stats()
        assert stats.available is True
        assert stats.keys == 1


class TestPassthroughCache:
    async def test_never_stores(self):
        cache = PassthroughCache()

        assert await cache.set("key", 1) is False
        assert await cache.get("key") is None
        assert await cache.increment("key") == 0
        assert await cache.set_with_version("key", 1, 0) is False
        assert await cache.get_ttl("key") == -2
        assert (await cache.get_stats()).available is False


class TestCacheFactory:
    @pytest.mark.parametrize(
        "provider_type,expected",
        [
            (CacheProviderType.MEMORY, MemoryCache),
            (CacheProviderType.NONE, PassthroughCache),
            (CacheProviderType.REDIS, RedisCache),
        ],
    )
    def test_selects_provider(self, provider_type, expected):
        with patch.object(cache_factory, "_cache_provider", None), patch.object(
            cache_factory.settings, "cache_provider", provider_type
        ):
            assert isinstance(cache_factory.get_cache_provider(), expected)

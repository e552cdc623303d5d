import pytest
from unittest.mock import patch

from common.core.config import settings


@pytest.fixture(scope="session")
def redis_container():
    """
    Start a throwaway Redis for the session.

    Tests that use it are skipped when Docker is not available.
    """
    from testcontainers.redis import RedisContainer

    try:
        container = RedisContainer()
        container.start()
    except Exception as e:
        pytest.skip(f"Redis container is not available: {e}")

    yield container
    container.stop()


@pytest.fixture
def redis_settings(redis_container):
    """Point the Redis providers at the container."""
    with patch.object(settings, "redis_host", redis_container.get_container_host_ip()):
        with patch.object(
            settings, "redis_port", int(redis_container.get_exposed_port(6379))
        ):
            with patch.object(settings, "redis_password", None):
                with patch.object(settings, "redis_db", 0):
                    yield

import pytest
from unittest.mock import AsyncMock, MagicMock

from common.providers.caching.memory_cache import MemoryCache
from common.providers.error_tracking.interface import ErrorReporterInterface
from common.providers.locking.memory_lock import MemoryLock
from packages.billing.providers.payment.interface import PaymentProviderInterface


@pytest.fixture
def memory_cache():
    """Fresh in-process cache with Redis semantics."""
    return MemoryCache()


@pytest.fixture
def memory_lock():
    """Fresh in-process distributed lock."""
    return MemoryLock()


@pytest.fixture
def mock_payment_provider():
    """Create a mock payment provider instance for testing."""
    provider = AsyncMock(spec=PaymentProviderInterface)
    provider.create_customer = AsyncMock(return_value="cus_new")
    provider.retrieve_subscription = AsyncMock()
    return provider


@pytest.fixture
def mock_error_reporter():
    """Create a mock exception sink for testing."""
    reporter = MagicMock(spec=ErrorReporterInterface)
    reporter.capture_exception = MagicMock(return_value=None)
    return reporter

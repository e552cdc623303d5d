# Shared pytest configuration and fixtures for all test types
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from common.db.base import Base
from packages.users.models.database.user import UserEntity
from packages.billing.models.database.subscription import SubscriptionEntity  # noqa: F401
from packages.content.models.database.content import (  # noqa: F401
    NoteEntity,
    SavedArticleEntity,
    SummaryEntity,
)

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine and initialize schema."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_connection(test_engine):
    """Create test connection with outer transaction for rollback isolation."""
    async with test_engine.connect() as connection:
        trans = await connection.begin()
        yield connection
        await trans.rollback()


@pytest_asyncio.fixture(scope="function")
async def test_session_factory(test_connection):
    """Create session factory bound to test connection.

    Using join_transaction_mode="create_savepoint" so each transaction()
    commits to a savepoint inside the outer test transaction.
    """
    return async_sessionmaker(
        bind=test_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )


@pytest_asyncio.fixture(scope="function")
async def test_db(test_session_factory):
    """Create a test database session."""
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function", autouse=True)
async def patch_lazy_sessions(test_session_factory, monkeypatch):
    """
    Patch session factories to use test database.

    This allows real transaction() and get_session() to run with proper
    commit/rollback/ContextVar semantics while using the test database.
    """
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", test_session_factory)
    monkeypatch.setattr(
        "common.db.scoped.AsyncSessionLocalReadonly", test_session_factory
    )


@pytest_asyncio.fixture(scope="function")
async def sample_user(test_db: AsyncSession):
    """A FREE user with no subscription or billing customer."""
    user = UserEntity(id="u1", email="u1@example.com", full_name="Test User")
    test_db.add(user)
    await test_db.commit()
    await test_db.refresh(user)
    return user


@pytest_asyncio.fixture(scope="function")
async def pro_user(test_db: AsyncSession):
    """An ACTIVE PRO user."""
    user = UserEntity(
        id="u-pro",
        email="pro@example.com",
        plan_type="PRO",
        subscription_status="ACTIVE",
        subscription_id="sub_pro",
        stripe_customer_id="cus_pro",
    )
    test_db.add(user)
    await test_db.commit()
    await test_db.refresh(user)
    return user

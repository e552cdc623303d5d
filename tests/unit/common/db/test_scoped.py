import pytest
from sqlalchemy import select, text

from common.core.exceptions import NotFoundError
from common.db.scoped import get_session, transaction
from common.db.context import (
    get_current_session,
    in_transaction,
    is_readonly_forced,
    _force_readonly,
)
from packages.billing.models.domain.subscription import SubscriptionCreateModel
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.users.models.database.user import UserEntity
from packages.users.models.domain.user import UserBillingUpdateModel
from packages.users.repositories.user_repository import UserRepository


async def find_user(session_factory, user_id: str):
    async with session_factory() as verify_session:
        result = await verify_session.execute(
            select(UserEntity).where(UserEntity.id == user_id)
        )
        return result.scalar_one_or_none()


def checkout_model(user_id: str = "u1") -> SubscriptionCreateModel:
    return SubscriptionCreateModel(
        user_id=user_id,
        stripe_subscription_id="sub_atomic",
        stripe_customer_id="cus_1",
        status="ACTIVE",
        plan_type="PRO",
    )


class TestTransaction:
    """Test the transaction() context manager with real database."""

    async def test_transaction_commits_on_success(self, test_session_factory):
        async with transaction() as session:
            session.add(UserEntity(id="tx-commit", email="commit@example.com"))

        assert await find_user(test_session_factory, "tx-commit") is not None

    async def test_transaction_rollback_on_exception(self, test_session_factory):
        with pytest.raises(ValueError):
            async with transaction() as session:
                session.add(UserEntity(id="tx-rollback", email="rb@example.com"))
                await session.flush()
                raise ValueError("Simulated error")

        assert await find_user(test_session_factory, "tx-rollback") is None

    async def test_transaction_sets_session_in_context(self):
        async with transaction() as session:
            assert get_current_session(readonly=False) is session
            assert in_transaction(readonly=False) is True

        assert get_current_session(readonly=False) is None
        assert in_transaction(readonly=False) is False

    async def test_readonly_transaction_uses_read_slot(self):
        async with transaction(readonly=True) as session:
            assert get_current_session(readonly=True) is session
            assert in_transaction(readonly=False) is False


class TestGetSession:
    """Test the get_session() context manager with real database."""

    async def test_standalone_get_session_commits(self, test_session_factory):
        async with get_session() as session:
            session.add(UserEntity(id="gs-commit", email="gs@example.com"))

        assert await find_user(test_session_factory, "gs-commit") is not None

    async def test_standalone_get_session_rollback_on_exception(
        self, test_session_factory
    ):
        with pytest.raises(ValueError):
            async with get_session() as session:
                session.add(UserEntity(id="gs-rollback", email="gsrb@example.com"))
                await session.flush()
                raise ValueError("Simulated error")

        assert await find_user(test_session_factory, "gs-rollback") is None

    async def test_get_session_joins_transaction(self):
        async with transaction() as tx_session:
            async with get_session() as s1:
                assert s1 is tx_session
            async with get_session() as s2:
                assert s2 is tx_session

    async def test_readonly_forced_is_respected(self):
        token = _force_readonly.set(True)
        try:
            async with get_session() as session:
                assert is_readonly_forced() is True
                result = await session.execute(text("SELECT 1"))
                assert result.scalar() == 1
        finally:
            _force_readonly.reset(token)


@pytest.mark.usefixtures("sample_user")
class TestBillingTransitionAtomicity:
    """Subscription and user rows change together or not at all."""

    async def test_both_rows_commit_together(self, test_session_factory):
        async with transaction():
            await SubscriptionRepository().upsert_by_external_id(checkout_model())
            await UserRepository().update_billing_state(
                "u1",
                UserBillingUpdateModel(
                    plan_type="PRO",
                    subscription_status="ACTIVE",
                    subscription_id="sub_atomic",
                ),
            )

        user = await find_user(test_session_factory, "u1")
        assert user.plan_type == "PRO"
        assert await SubscriptionRepository().get_by_external_id("sub_atomic")

    async def test_failed_user_write_discards_subscription(self):
        with pytest.raises(NotFoundError):
            async with transaction():
                await SubscriptionRepository().upsert_by_external_id(
                    checkout_model("ghost")
                )
                await UserRepository().update_billing_state(
                    "ghost", UserBillingUpdateModel(plan_type="PRO")
                )

        assert await SubscriptionRepository().get_by_external_id("sub_atomic") is None

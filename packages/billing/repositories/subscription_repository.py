"""
Repository for subscription management.
"""

from typing import Optional
from sqlalchemy import select, update

from common.repositories.base import BaseRepository
from packages.billing.models.database.subscription import SubscriptionEntity
from packages.billing.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
    SubscriptionUpdateModel,
)
from packages.billing.models.domain.enums import SubscriptionStatus
from common.core.otel_axiom_exporter import trace_span, get_logger

logger = get_logger(__name__)


class SubscriptionRepository(BaseRepository[SubscriptionEntity, Subscription]):
    """Repository for user subscriptions, addressed by the Stripe subscription id."""

    def __init__(self, db_session=None):
        super().__init__(SubscriptionEntity, Subscription, db_session)

    @trace_span
    async def get_by_external_id(
        self, stripe_subscription_id: str
    ) -> Optional[Subscription]:
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity).where(
                    SubscriptionEntity.stripe_subscription_id == stripe_subscription_id
                )
            )
            db_subscription = result.scalar_one_or_none()
            return self._entity_to_domain(db_subscription) if db_subscription else None

    @trace_span
    async def get_current_for_user(self, user_id: str) -> Optional[Subscription]:
        """Get the user's newest ACTIVE or TRIALING subscription."""
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity)
                .where(
                    SubscriptionEntity.user_id == user_id,
                    SubscriptionEntity.status.in_(
                        [
                            SubscriptionStatus.ACTIVE.value,
                            SubscriptionStatus.TRIALING.value,
                        ]
                    ),
                )
                .order_by(SubscriptionEntity.created_at.desc(), SubscriptionEntity.id.desc())
                .limit(1)
            )
            db_subscription = result.scalar_one_or_none()
            return self._entity_to_domain(db_subscription) if db_subscription else None

    @trace_span
    async def upsert_by_external_id(
        self, create_model: SubscriptionCreateModel
    ) -> Subscription:
        """
        Create the subscription, or overwrite it if the external id already exists.

        Redelivered checkouts land on the existing row. Two first deliveries
        racing each other hit the unique constraint and one of them fails
        with IntegrityError; its retry then takes the update path.
        """
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity).where(
                    SubscriptionEntity.stripe_subscription_id
                    == create_model.stripe_subscription_id
                )
            )
            db_subscription = result.scalar_one_or_none()

            if db_subscription is None:
                db_subscription = SubscriptionEntity(**create_model.model_dump())
                session.add(db_subscription)
                logger.info(
                    f"Creating subscription {create_model.stripe_subscription_id}",
                    extra={"user_id": create_model.user_id},
                )
            else:
                for field, value in create_model.model_dump(exclude_unset=True).items():
                    setattr(db_subscription, field, value)
                logger.info(
                    f"Subscription {create_model.stripe_subscription_id} already exists, updating",
                    extra={"user_id": create_model.user_id},
                )

            await session.flush()
            await session.refresh(db_subscription)
            return self._entity_to_domain(db_subscription)

    @trace_span
    async def update_by_external_id(
        self, stripe_subscription_id: str, update_model: SubscriptionUpdateModel
    ) -> bool:
        """
        Write the explicitly set fields of update_model.

        Returns:
            False if no row has this external id
        """
        data = update_model.model_dump(exclude_unset=True)
        if not data:
            return await self.get_by_external_id(stripe_subscription_id) is not None

        async with self._get_session() as session:
            result = await session.execute(
                update(SubscriptionEntity)
                .where(SubscriptionEntity.stripe_subscription_id == stripe_subscription_id)
                .values(data)
            )
            return result.rowcount > 0

from typing import Optional
from sqlalchemy import select, update

from common.core.exceptions import NotFoundError
from common.repositories.base import BaseRepository
from packages.users.models.database.user import UserEntity
from packages.users.models.domain.user import User, UserBillingUpdateModel
from common.core.otel_axiom_exporter import trace_span


class UserRepository(BaseRepository[UserEntity, User]):
    def __init__(self, db_session=None):
        super().__init__(UserEntity, User, db_session)

    @trace_span
    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email."""
        async with self._get_session() as session:
            result = await session.execute(
                select(UserEntity).where(UserEntity.email == email)
            )
            db_user = result.scalar_one_or_none()
            return self._entity_to_domain(db_user) if db_user else None

    @trace_span
    async def get_billing_customer_id(self, user_id: str) -> Optional[str]:
        """
        Get the user's billing customer id.

        Raises:
            NotFoundError: If the user does not exist
        """
        async with self._get_session() as session:
            result = await session.execute(
                select(UserEntity.id, UserEntity.stripe_customer_id).where(
                    UserEntity.id == user_id
                )
            )
            row = result.one_or_none()
            if row is None:
                raise NotFoundError(f"User {user_id} not found")
            return row.stripe_customer_id

    @trace_span
    async def set_billing_customer_id(self, user_id: str, customer_id: str) -> None:
        async with self._get_session() as session:
            result = await session.execute(
                update(UserEntity)
                .where(UserEntity.id == user_id)
                .values(stripe_customer_id=customer_id)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"User {user_id} not found")

    @trace_span
    async def update_billing_state(
        self, user_id: str, update_model: UserBillingUpdateModel
    ) -> None:
        """
        Write plan and subscription fields on the user row.

        Call inside the same transaction() as the subscription write.

        Raises:
            NotFoundError: If the user does not exist; the enclosing
                transaction rolls back
        """
        data = update_model.model_dump(exclude_unset=True)
        if not data:
            return

        async with self._get_session() as session:
            result = await session.execute(
                update(UserEntity).where(UserEntity.id == user_id).values(data)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"User {user_id} not found")

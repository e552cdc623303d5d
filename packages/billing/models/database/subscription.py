"""
Database entity for subscriptions.
"""

from sqlalchemy import Boolean, Column, String, DateTime, ForeignKey, Index
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class SubscriptionEntity(Base):
    """
    User subscription database entity.

    Keyed externally by stripe_subscription_id, which is what webhook upserts
    match on. A user may accumulate several rows over time; the newest
    ACTIVE or TRIALING one is current.
    """

    __tablename__ = "subscriptions"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    user_id = Column(
        String(255),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # External platform IDs
    stripe_subscription_id = Column(String(255), nullable=False, unique=True, index=True)
    stripe_customer_id = Column(String(255), nullable=False)
    stripe_price_id = Column(String(255), nullable=True)

    status = Column(String(50), nullable=False, index=True)
    plan_type = Column(String(50), nullable=False)

    # Billing cycle
    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    cancel_at_period_end = Column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    canceled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("idx_subscription_user_status", "user_id", "status"),)

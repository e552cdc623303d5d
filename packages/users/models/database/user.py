from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func

from common.db.base import Base


class UserEntity(Base):
    __tablename__ = "users"

    id = Column(String(255), primary_key=True, index=True)
    email = Column(String, nullable=False, unique=True, index=True)
    full_name = Column(String, nullable=True)

    # Billing state, written only alongside the matching subscriptions row
    plan_type = Column(String(50), nullable=False, server_default="FREE")
    subscription_status = Column(String(50), nullable=False, server_default="NONE")
    subscription_id = Column(String(255), nullable=True, index=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    stripe_customer_id = Column(String(255), nullable=True, unique=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

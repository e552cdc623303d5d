"""
Domain models for subscriptions.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, field_validator

from packages.billing.models.domain.enums import PlanType, SubscriptionStatus


class Subscription(BaseModel):
    """
    A user's subscription as last reported by the billing provider.

    Rows are created by checkout and never hard-deleted; CANCELED is terminal.
    """

    id: int
    user_id: str

    stripe_subscription_id: str
    stripe_customer_id: str
    stripe_price_id: Optional[str] = None

    status: SubscriptionStatus
    plan_type: PlanType

    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    canceled_at: Optional[datetime] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class _EnumValueValidators(BaseModel):
    @field_validator("plan_type", mode="before", check_fields=False)
    @classmethod
    def validate_plan_type(cls, v):
        if isinstance(v, PlanType):
            return v.value
        return v

    @field_validator("status", mode="before", check_fields=False)
    @classmethod
    def validate_status(cls, v):
        if isinstance(v, SubscriptionStatus):
            return v.value
        return v


class SubscriptionCreateModel(_EnumValueValidators):
    """Model for creating a subscription from a checkout."""

    user_id: str
    stripe_subscription_id: str
    stripe_customer_id: str
    stripe_price_id: Optional[str] = None
    status: str
    plan_type: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False


class SubscriptionUpdateModel(_EnumValueValidators):
    """
    Model for updating a subscription.

    Only explicitly set fields are written; a period bound the provider
    omitted stays unset rather than being nulled.
    """

    user_id: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    status: Optional[str] = None
    plan_type: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: Optional[bool] = None
    canceled_at: Optional[datetime] = None

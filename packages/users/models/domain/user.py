from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, field_validator

from packages.billing.models.domain.enums import PlanType, SubscriptionStatus


class User(BaseModel):
    id: str
    email: EmailStr
    full_name: Optional[str] = None
    plan_type: PlanType = PlanType.FREE
    subscription_status: SubscriptionStatus = SubscriptionStatus.NONE
    subscription_id: Optional[str] = None
    current_period_end: Optional[datetime] = None
    stripe_customer_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    def has_active_status(self) -> bool:
        return self.subscription_status.grants_access()


class UserBillingUpdateModel(BaseModel):
    """
    Billing fields on the user row.

    Only fields that were explicitly set are written, so passing
    subscription_id=None clears it while leaving it out keeps it.
    """

    plan_type: Optional[str] = None
    subscription_status: Optional[str] = None
    subscription_id: Optional[str] = None
    current_period_end: Optional[datetime] = None

    @field_validator("plan_type", mode="before")
    @classmethod
    def validate_plan_type(cls, v):
        if isinstance(v, PlanType):
            return v.value
        return v

    @field_validator("subscription_status", mode="before")
    @classmethod
    def validate_status(cls, v):
        if isinstance(v, SubscriptionStatus):
            return v.value
        return v

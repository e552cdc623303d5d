"""
Domain models for Stripe webhook payloads.

Only the fields the sync handlers read are modelled; everything else on the
Stripe objects is ignored. Timestamps are unix seconds as Stripe sends them.
"""

from datetime import datetime, timezone
from typing import Optional, Any, Union
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator

from packages.billing.models.domain.enums import PlanType


class StripeWebhookType(str, Enum):
    """Stripe webhook event types the sync service handles."""

    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


class StripeSubscriptionStatus(str, Enum):
    """Stripe subscription status values."""

    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    PAUSED = "paused"


def from_unix(ts: Optional[int]) -> Optional[datetime]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc)


class _PaidPlanMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    @field_validator("plan_type", check_fields=False)
    @classmethod
    def validate_paid_plan(cls, v: Optional[PlanType]) -> Optional[PlanType]:
        if v == PlanType.FREE:
            raise ValueError("plan in billing metadata must be a paid plan")
        return v


class CheckoutMetadata(_PaidPlanMetadata):
    """Metadata attached to the checkout session when it was created."""

    user_id: str = Field(alias="userId", min_length=1)
    plan_type: PlanType = Field(alias="planType")


class SubscriptionMetadata(_PaidPlanMetadata):
    """Metadata copied onto the Stripe subscription."""

    user_id: str = Field(alias="userId", min_length=1)
    plan_type: Optional[PlanType] = Field(default=None, alias="planType")


class StripePrice(BaseModel):
    id: str


class StripeSubscriptionItem(BaseModel):
    price: StripePrice
    # Newer API versions report the period on the item only
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None


class StripeSubscriptionItems(BaseModel):
    data: list[StripeSubscriptionItem] = Field(min_length=1)


class StripeSubscriptionRef(BaseModel):
    """The parts of a subscription needed to find its owner."""

    id: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class StripeSubscriptionData(StripeSubscriptionRef):
    """Stripe subscription object."""

    customer: str
    # Kept raw; unknown values map to NONE rather than failing validation
    status: str
    items: StripeSubscriptionItems
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None
    cancel_at_period_end: bool = False
    canceled_at: Optional[int] = None

    @field_validator("customer", mode="before")
    @classmethod
    def validate_customer(cls, v):
        if isinstance(v, dict):
            return v.get("id")
        return v

    @property
    def first_item(self) -> StripeSubscriptionItem:
        return self.items.data[0]

    @property
    def price_id(self) -> str:
        return self.first_item.price.id

    @property
    def period_start(self) -> Optional[datetime]:
        return from_unix(
            self.current_period_start
            if self.current_period_start is not None
            else self.first_item.current_period_start
        )

    @property
    def period_end(self) -> Optional[datetime]:
        return from_unix(
            self.current_period_end
            if self.current_period_end is not None
            else self.first_item.current_period_end
        )


class StripeInvoiceData(BaseModel):
    """Stripe invoice object."""

    id: str
    customer: Optional[str] = None
    subscription: Optional[Union[str, dict[str, Any]]] = None
    # Newer API versions move the subscription under parent.subscription_details
    parent: Optional[dict[str, Any]] = None

    @property
    def subscription_id(self) -> Optional[str]:
        ref = self.subscription
        if ref is None and self.parent:
            ref = (self.parent.get("subscription_details") or {}).get("subscription")
        if isinstance(ref, dict):
            return ref.get("id")
        return ref


class StripeCheckoutSessionData(BaseModel):
    """Stripe checkout session object; subscription and customer may be expanded."""

    id: str
    customer: Optional[Union[str, dict[str, Any]]] = None
    subscription: Optional[Union[str, dict[str, Any]]] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def customer_id(self) -> Optional[str]:
        if isinstance(self.customer, dict):
            return self.customer.get("id")
        return self.customer


class StripeEventData(BaseModel):
    """Stripe event data wrapper."""

    object: dict[str, Any]


class StripeWebhookEvent(BaseModel):
    """Stripe event envelope, already signature-verified by the caller."""

    id: str
    type: str
    data: StripeEventData
    created: int
    livemode: bool

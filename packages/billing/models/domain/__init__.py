"""Domain models for billing."""

from packages.billing.models.domain.enums import (
    PlanType,
    SubscriptionStatus,
    ResourceType,
)
from packages.billing.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
    SubscriptionUpdateModel,
)
from packages.billing.models.domain.quota import Quota, QuotaRule

__all__ = [
    # Enums
    "PlanType",
    "SubscriptionStatus",
    "ResourceType",
    # Subscription
    "Subscription",
    "SubscriptionCreateModel",
    "SubscriptionUpdateModel",
    # Quota
    "Quota",
    "QuotaRule",
]

"""Billing services."""

from packages.billing.services.entitlement_service import (
    EntitlementService,
    invalidate_user_entitlements,
)
from packages.billing.services.quota_service import QuotaService
from packages.billing.services.subscription_sync_service import (
    SubscriptionSyncService,
    map_stripe_status,
)

__all__ = [
    "EntitlementService",
    "invalidate_user_entitlements",
    "QuotaService",
    "SubscriptionSyncService",
    "map_stripe_status",
]

"""Repositories for billing."""

from packages.billing.repositories.subscription_repository import (
    SubscriptionRepository,
)

__all__ = ["SubscriptionRepository"]

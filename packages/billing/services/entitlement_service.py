"""
Service for entitlement checks and billing customer provisioning.

Answers "what may this user do" from the cache, recomputing under a
distributed lock on a miss so a burst of requests after an invalidation
hits the database once.
"""

import asyncio
from typing import Optional

from common.core.exceptions import ProcessingError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.providers.caching.factory import get_cache_provider
from common.providers.caching.interface import CacheInterface
from common.providers.locking.factory import get_lock_provider
from common.providers.locking.interface import DistributedLockInterface
from packages.billing.cache_keys import (
    feature_access_key,
    feature_access_pattern,
    subscription_key,
)
from packages.billing.models.domain.enums import PlanType
from packages.billing.models.domain.subscription import Subscription
from packages.billing.providers.payment.factory import get_payment_provider
from packages.billing.providers.payment.interface import PaymentProviderInterface
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.users.cache_keys import user_plan_key
from packages.users.repositories.user_repository import UserRepository

logger = get_logger(__name__)

SUBSCRIPTION_CACHE_TTL = 300
FEATURE_ACCESS_TTL = 300
# Denials are cached briefly so a fresh checkout is picked up quickly
FEATURE_ACCESS_DENIED_TTL = 60
PLAN_CACHE_TTL = 60

CUSTOMER_LOCK_TTL_MS = 30_000
SUBSCRIPTION_LOCK_TTL_MS = 10_000


async def invalidate_user_entitlements(cache: CacheInterface, user_id: str) -> None:
    """
    Drop every cached entitlement for a user after a billing transition.

    Best effort: a failed delete leaves the entry to expire by TTL.
    """
    # Version first: a refresh that read the database earlier must lose its CAS
    await cache.invalidate_version(subscription_key(user_id))
    await cache.delete(subscription_key(user_id))
    await cache.delete_pattern(feature_access_pattern(user_id))
    await cache.delete(user_plan_key(user_id))
    logger.info(
        f"Invalidated entitlement cache for user {user_id}",
        extra={"user_id": user_id},
    )


class EntitlementService:
    """Service for subscription lookups and plan-based access checks."""

    def __init__(
        self,
        cache: Optional[CacheInterface] = None,
        lock: Optional[DistributedLockInterface] = None,
        payment_provider: Optional[PaymentProviderInterface] = None,
        user_repo: Optional[UserRepository] = None,
        subscription_repo: Optional[SubscriptionRepository] = None,
    ):
        self.cache = cache or get_cache_provider()
        self.lock = lock or get_lock_provider()
        self.payment = payment_provider or get_payment_provider()
        self.user_repo = user_repo or UserRepository()
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.customer_lock_wait_seconds = 1.0

    @trace_span
    async def get_or_create_billing_customer(
        self, user_id: str, email: Optional[str] = None
    ) -> str:
        """
        Return the user's billing customer id, creating the customer once.

        Concurrent callers for the same user serialize on a lock so exactly
        one customer is created; a caller that loses the lock waits and
        re-reads the id the winner saved.

        Raises:
            NotFoundError: If the user does not exist
            ProcessingError: If another holder never saved an id
        """
        customer_id = await self.user_repo.get_billing_customer_id(user_id)
        if customer_id:
            return customer_id

        async def provision() -> str:
            existing = await self.user_repo.get_billing_customer_id(user_id)
            if existing:
                return existing

            new_customer_id = await self.payment.create_customer(user_id, email)
            await self.user_repo.set_billing_customer_id(user_id, new_customer_id)
            logger.info(
                f"Provisioned billing customer for user {user_id}",
                extra={"user_id": user_id, "customer_id": new_customer_id},
            )
            return new_customer_id

        result = await self.lock.execute_with_lock(
            f"stripe-customer-{user_id}", CUSTOMER_LOCK_TTL_MS, provision
        )
        if result is not None:
            return result

        await asyncio.sleep(self.customer_lock_wait_seconds)
        customer_id = await self.user_repo.get_billing_customer_id(user_id)
        if not customer_id:
            logger.error(
                f"Billing customer for user {user_id} still missing after waiting on lock",
                extra={"user_id": user_id},
            )
            raise ProcessingError(
                f"Billing customer creation in progress for user {user_id}"
            )
        return customer_id

    @trace_span
    async def get_user_subscription(self, user_id: str) -> Optional[Subscription]:
        """
        Get the user's current ACTIVE or TRIALING subscription.

        On a cache miss only the lock holder queries and repopulates; callers
        that do not get the lock read the database directly without caching.
        """
        key = subscription_key(user_id)
        cached = await self.cache.get(key)
        if cached is not None:
            return Subscription.model_validate(cached)

        async def refresh() -> Optional[Subscription]:
            versioned = await self.cache.get_with_version(key)
            if versioned.data is not None:
                return Subscription.model_validate(versioned.data)

            subscription = await self.subscription_repo.get_current_for_user(user_id)
            if subscription is not None:
                # Loses to any invalidation that happened during the query
                stored = await self.cache.set_with_version(
                    key,
                    subscription.model_dump(mode="json"),
                    versioned.version,
                    ttl=SUBSCRIPTION_CACHE_TTL,
                )
                if not stored:
                    logger.debug(f"Skipped caching stale subscription for {user_id}")
            return subscription

        subscription = await self.lock.execute_with_lock(
            f"subscription-refresh-{user_id}", SUBSCRIPTION_LOCK_TTL_MS, refresh
        )
        if subscription is not None:
            return subscription

        return await self.subscription_repo.get_current_for_user(user_id)

    async def has_active_subscription(self, user_id: str) -> bool:
        return await self.get_user_subscription(user_id) is not None

    @trace_span
    async def has_feature_access(self, user_id: str, required_plan: PlanType) -> bool:
        """
        Check whether the user's plan is at least required_plan.

        Only ACTIVE and TRIALING users have access.
        """
        key = feature_access_key(user_id, required_plan.value)
        cached = await self.cache.get(key)
        if cached is not None:
            return bool(cached)

        user = await self.user_repo.get(user_id)
        if user is None or not user.has_active_status():
            await self.cache.set(key, False, ttl=FEATURE_ACCESS_DENIED_TTL)
            return False

        allowed = user.plan_type.includes(required_plan)
        await self.cache.set(key, allowed, ttl=FEATURE_ACCESS_TTL)
        return allowed

    @trace_span
    async def get_user_plan(self, user_id: str) -> Optional[PlanType]:
        """Get the user's plan, or None for an unknown user."""
        key = user_plan_key(user_id)
        cached = await self.cache.get(key)
        if cached is not None:
            return PlanType(cached)

        user = await self.user_repo.get(user_id)
        if user is None:
            return None

        await self.cache.set(key, user.plan_type.value, ttl=PLAN_CACHE_TTL)
        return user.plan_type

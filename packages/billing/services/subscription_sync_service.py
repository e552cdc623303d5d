"""
Service that applies Stripe subscription events to local billing state.

Each handler writes the subscriptions row and the users row in a single
transaction and invalidates the user's cached entitlements after commit.
Events may arrive twice or out of order, so every write is keyed by the
Stripe subscription id and safe to repeat.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from common.core.exceptions import UnresolvableLinkageError, WebhookValidationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import transaction
from common.providers.caching.factory import get_cache_provider
from common.providers.caching.interface import CacheInterface
from common.providers.error_tracking.factory import get_error_reporter
from common.providers.error_tracking.interface import ErrorReporterInterface
from packages.billing.models.domain.enums import PlanType, SubscriptionStatus
from packages.billing.models.domain.stripe_webhooks import (
    CheckoutMetadata,
    StripeCheckoutSessionData,
    StripeInvoiceData,
    StripeSubscriptionData,
    StripeSubscriptionRef,
    StripeSubscriptionStatus,
    SubscriptionMetadata,
    from_unix,
)
from packages.billing.models.domain.subscription import (
    SubscriptionCreateModel,
    SubscriptionUpdateModel,
)
from packages.billing.providers.payment.factory import get_payment_provider
from packages.billing.providers.payment.interface import PaymentProviderInterface
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.services.entitlement_service import invalidate_user_entitlements
from packages.users.models.domain.user import UserBillingUpdateModel
from packages.users.repositories.user_repository import UserRepository

logger = get_logger(__name__)

_STATUS_MAP = {
    StripeSubscriptionStatus.ACTIVE.value: SubscriptionStatus.ACTIVE,
    StripeSubscriptionStatus.PAST_DUE.value: SubscriptionStatus.PAST_DUE,
    StripeSubscriptionStatus.CANCELED.value: SubscriptionStatus.CANCELED,
    StripeSubscriptionStatus.INCOMPLETE.value: SubscriptionStatus.INCOMPLETE,
    StripeSubscriptionStatus.INCOMPLETE_EXPIRED.value: SubscriptionStatus.CANCELED,
    StripeSubscriptionStatus.TRIALING.value: SubscriptionStatus.TRIALING,
    StripeSubscriptionStatus.UNPAID.value: SubscriptionStatus.PAST_DUE,
    StripeSubscriptionStatus.PAUSED.value: SubscriptionStatus.CANCELED,
}


def map_stripe_status(stripe_status: str) -> SubscriptionStatus:
    """Map a Stripe subscription status to ours; unknown values map to NONE."""
    status = _STATUS_MAP.get(stripe_status)
    if status is None:
        logger.warning(f"Unknown Stripe subscription status: {stripe_status}")
        return SubscriptionStatus.NONE
    return status


def _period_fields(subscription: StripeSubscriptionData) -> dict[str, datetime]:
    """Period bounds that are present; absent ones are left out, never nulled."""
    fields = {}
    if subscription.period_start is not None:
        fields["current_period_start"] = subscription.period_start
    if subscription.period_end is not None:
        fields["current_period_end"] = subscription.period_end
    return fields


class SubscriptionSyncService:
    """Reconciles Stripe subscription lifecycle events into users and subscriptions."""

    def __init__(
        self,
        cache: Optional[CacheInterface] = None,
        payment_provider: Optional[PaymentProviderInterface] = None,
        error_reporter: Optional[ErrorReporterInterface] = None,
        subscription_repo: Optional[SubscriptionRepository] = None,
        user_repo: Optional[UserRepository] = None,
    ):
        self.cache = cache or get_cache_provider()
        self.payment = payment_provider or get_payment_provider()
        self.error_reporter = error_reporter or get_error_reporter()
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.user_repo = user_repo or UserRepository()

    @trace_span
    async def handle_checkout_completed(self, session: dict[str, Any]) -> None:
        """
        Create or refresh the subscription a completed checkout paid for.

        Raises:
            WebhookValidationError: If the session, its metadata or its
                subscription is malformed
            NotFoundError: If the user in the metadata does not exist
        """
        try:
            checkout = StripeCheckoutSessionData.model_validate(session)
            metadata = CheckoutMetadata.model_validate(checkout.metadata)
        except PydanticValidationError as e:
            logger.error(
                f"Invalid checkout session payload: {e}",
                extra={"session_id": session.get("id")},
            )
            raise WebhookValidationError(
                f"Invalid checkout session {session.get('id')}", errors=e.errors()
            ) from e

        subscription = await self._load_checkout_subscription(checkout)
        customer_id = checkout.customer_id or subscription.customer
        status = map_stripe_status(subscription.status)
        period = _period_fields(subscription)

        logger.info(
            f"Checkout completed for user {metadata.user_id}",
            extra={
                "user_id": metadata.user_id,
                "subscription_id": subscription.id,
                "plan_type": metadata.plan_type.value,
                "status": status.value,
            },
        )

        async with transaction():
            # User first so a missing user fails before the subscription insert
            await self.user_repo.update_billing_state(
                metadata.user_id,
                UserBillingUpdateModel(
                    plan_type=metadata.plan_type,
                    subscription_status=status,
                    subscription_id=subscription.id,
                    current_period_end=period.get("current_period_end"),
                ),
            )
            await self.subscription_repo.upsert_by_external_id(
                SubscriptionCreateModel(
                    user_id=metadata.user_id,
                    stripe_subscription_id=subscription.id,
                    stripe_customer_id=customer_id,
                    stripe_price_id=subscription.price_id,
                    status=status,
                    plan_type=metadata.plan_type,
                    cancel_at_period_end=subscription.cancel_at_period_end,
                    **period,
                )
            )

        await invalidate_user_entitlements(self.cache, metadata.user_id)

    @trace_span
    async def handle_subscription_updated(self, subscription: dict[str, Any]) -> None:
        """
        Apply a subscription change (status, plan, period, cancellation flag).

        Raises:
            WebhookValidationError: If the subscription is malformed
            UnresolvableLinkageError: If the subscription cannot be tied to a
                local row, including an update that arrived before its checkout
        """
        data = self._parse_subscription(subscription)
        status = map_stripe_status(data.status)
        user_id, plan_type = await self._resolve_linkage(
            data.id, data.metadata, include_plan=True
        )
        period = _period_fields(data)

        subscription_fields: dict[str, Any] = {
            "status": status,
            "stripe_price_id": data.price_id,
            "cancel_at_period_end": data.cancel_at_period_end,
            **period,
        }
        user_fields: dict[str, Any] = {"subscription_status": status}
        if plan_type is not None:
            subscription_fields["plan_type"] = plan_type
            user_fields["plan_type"] = plan_type
        # Null clears it when a scheduled cancellation is undone
        subscription_fields["canceled_at"] = from_unix(data.canceled_at)
        if "current_period_end" in period:
            user_fields["current_period_end"] = period["current_period_end"]

        logger.info(
            f"Subscription {data.id} updated to {status.value}",
            extra={
                "user_id": user_id,
                "subscription_id": data.id,
                "stripe_status": data.status,
                "cancel_at_period_end": data.cancel_at_period_end,
            },
        )

        async with transaction():
            updated = await self.subscription_repo.update_by_external_id(
                data.id, SubscriptionUpdateModel(**subscription_fields)
            )
            if not updated:
                raise self._unresolvable(
                    f"No local subscription {data.id} for update event",
                    data.id,
                    data.metadata,
                )
            await self.user_repo.update_billing_state(
                user_id, UserBillingUpdateModel(**user_fields)
            )

        await invalidate_user_entitlements(self.cache, user_id)

    @trace_span
    async def handle_subscription_deleted(self, subscription: dict[str, Any]) -> None:
        """Cancel the subscription and drop the user back to FREE."""
        try:
            ref = StripeSubscriptionRef.model_validate(subscription)
        except PydanticValidationError as e:
            logger.error(f"Invalid deleted subscription payload: {e}")
            raise WebhookValidationError(
                "Invalid subscription payload", errors=e.errors()
            ) from e

        user_id, _ = await self._resolve_linkage(ref.id, ref.metadata)

        logger.info(
            f"Subscription {ref.id} deleted, downgrading user {user_id} to FREE",
            extra={"user_id": user_id, "subscription_id": ref.id},
        )

        async with transaction():
            updated = await self.subscription_repo.update_by_external_id(
                ref.id,
                SubscriptionUpdateModel(
                    status=SubscriptionStatus.CANCELED,
                    cancel_at_period_end=False,
                    canceled_at=datetime.now(timezone.utc),
                ),
            )
            if not updated:
                raise self._unresolvable(
                    f"No local subscription {ref.id} for delete event",
                    ref.id,
                    ref.metadata,
                )
            await self.user_repo.update_billing_state(
                user_id,
                UserBillingUpdateModel(
                    subscription_status=SubscriptionStatus.CANCELED,
                    plan_type=PlanType.FREE,
                    subscription_id=None,
                    current_period_end=None,
                ),
            )

        await invalidate_user_entitlements(self.cache, user_id)

    @trace_span
    async def handle_payment_failed(self, invoice: dict[str, Any]) -> None:
        """
        Mark the invoiced subscription PAST_DUE.

        Invoices without a subscription (one-off charges) are ignored.
        """
        try:
            data = StripeInvoiceData.model_validate(invoice)
        except PydanticValidationError as e:
            logger.error(f"Invalid invoice payload: {e}")
            raise WebhookValidationError(
                "Invalid invoice payload", errors=e.errors()
            ) from e

        subscription_id = data.subscription_id
        if not subscription_id:
            logger.info(
                f"Invoice {data.id} has no subscription, ignoring payment failure",
                extra={"invoice_id": data.id},
            )
            return

        # The invoice does not carry the subscription metadata
        live = self._parse_subscription(
            await self.payment.retrieve_subscription(subscription_id)
        )
        user_id, _ = await self._resolve_linkage(live.id, live.metadata)

        logger.warning(
            f"Payment failed for subscription {live.id}",
            extra={"user_id": user_id, "subscription_id": live.id, "invoice_id": data.id},
        )

        async with transaction():
            updated = await self.subscription_repo.update_by_external_id(
                live.id, SubscriptionUpdateModel(status=SubscriptionStatus.PAST_DUE)
            )
            if not updated:
                raise self._unresolvable(
                    f"No local subscription {live.id} for failed payment",
                    live.id,
                    live.metadata,
                )
            await self.user_repo.update_billing_state(
                user_id,
                UserBillingUpdateModel(subscription_status=SubscriptionStatus.PAST_DUE),
            )

        await invalidate_user_entitlements(self.cache, user_id)

    async def _load_checkout_subscription(
        self, checkout: StripeCheckoutSessionData
    ) -> StripeSubscriptionData:
        """Use the expanded subscription if it has items, otherwise fetch it."""
        ref = checkout.subscription
        if isinstance(ref, dict) and ref.get("items"):
            return self._parse_subscription(ref)

        subscription_id = ref.get("id") if isinstance(ref, dict) else ref
        if not subscription_id:
            logger.error(f"Checkout session {checkout.id} has no subscription")
            raise WebhookValidationError(
                f"Checkout session {checkout.id} has no subscription"
            )

        return self._parse_subscription(
            await self.payment.retrieve_subscription(subscription_id)
        )

    def _parse_subscription(self, subscription: dict[str, Any]) -> StripeSubscriptionData:
        try:
            return StripeSubscriptionData.model_validate(subscription)
        except PydanticValidationError as e:
            logger.error(
                f"Invalid subscription payload: {e}",
                extra={"subscription_id": subscription.get("id")},
            )
            raise WebhookValidationError(
                f"Invalid subscription {subscription.get('id')}", errors=e.errors()
            ) from e

    async def _resolve_linkage(
        self,
        subscription_id: str,
        metadata: dict[str, Any],
        include_plan: bool = False,
    ) -> tuple[str, Optional[PlanType]]:
        """
        Find the user (and optionally plan) a subscription belongs to.

        Prefers the metadata; when it is invalid, falls back to the local
        subscription row.

        Raises:
            UnresolvableLinkageError: If neither source identifies the user
        """
        try:
            parsed = SubscriptionMetadata.model_validate(metadata)
            return parsed.user_id, parsed.plan_type if include_plan else None
        except PydanticValidationError as e:
            logger.error(
                f"Invalid metadata on subscription {subscription_id}: {e}",
                extra={"subscription_id": subscription_id},
            )

        existing = await self.subscription_repo.get_by_external_id(subscription_id)
        if existing is None:
            raise self._unresolvable(
                f"Cannot resolve user for subscription {subscription_id}",
                subscription_id,
                metadata,
            )

        logger.warning(
            f"Recovered user {existing.user_id} for subscription {subscription_id} from database",
            extra={"user_id": existing.user_id, "subscription_id": subscription_id},
        )
        return existing.user_id, existing.plan_type if include_plan else None

    def _unresolvable(
        self, message: str, subscription_id: str, metadata: dict[str, Any]
    ) -> UnresolvableLinkageError:
        """Log and report a linkage failure; the caller raises the result."""
        error = UnresolvableLinkageError(message, subscription_id=subscription_id)
        logger.error(
            message,
            extra={"subscription_id": subscription_id, "metadata": metadata},
        )
        self.error_reporter.capture_exception(
            error, {"subscription_id": subscription_id, "metadata": metadata}
        )
        return error

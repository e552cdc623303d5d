"""
Stripe webhook dispatch.

Receives events whose signature the HTTP layer has already verified and
routes them to SubscriptionSyncService. Handler exceptions propagate so the
delivering queue retries the event.
"""

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from common.core.exceptions import WebhookValidationError
from common.core.otel_axiom_exporter import get_logger
from packages.billing.models.domain.stripe_webhooks import (
    StripeWebhookEvent,
    StripeWebhookType,
)
from packages.billing.services.subscription_sync_service import SubscriptionSyncService

logger = get_logger(__name__)


async def handle_stripe_event(
    event: dict[str, Any], service: SubscriptionSyncService
) -> bool:
    """
    Route a verified Stripe event to its handler.

    Returns:
        True if the event was handled, False if its type is ignored

    Raises:
        WebhookValidationError: If the event envelope is malformed
    """
    try:
        payload = StripeWebhookEvent.model_validate(event)
    except PydanticValidationError as e:
        logger.error(f"Invalid Stripe event envelope: {e}")
        raise WebhookValidationError("Invalid Stripe event", errors=e.errors()) from e

    logger.info(
        f"Received Stripe webhook: {payload.type}",
        extra={
            "event_id": payload.id,
            "event_type": payload.type,
            "livemode": payload.livemode,
        },
    )

    obj = payload.data.object
    if payload.type == StripeWebhookType.CHECKOUT_SESSION_COMPLETED.value:
        await service.handle_checkout_completed(obj)
    elif payload.type == StripeWebhookType.SUBSCRIPTION_UPDATED.value:
        await service.handle_subscription_updated(obj)
    elif payload.type == StripeWebhookType.SUBSCRIPTION_DELETED.value:
        await service.handle_subscription_deleted(obj)
    elif payload.type == StripeWebhookType.INVOICE_PAYMENT_FAILED.value:
        await service.handle_payment_failed(obj)
    else:
        logger.info(f"Unhandled Stripe webhook type: {payload.type}")
        return False

    return True

"""
Stripe implementation of payment provider.
"""

from typing import Any, Optional
import stripe

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.providers.payment.interface import PaymentProviderInterface

logger = get_logger(__name__)


class StripePaymentProvider(PaymentProviderInterface):
    """Stripe-based payment implementation."""

    def __init__(self):
        """Initialize Stripe with API credentials."""
        stripe.api_key = settings.stripe_secret_key
        if settings.stripe_api_version:
            stripe.api_version = settings.stripe_api_version

    @trace_span
    async def create_customer(self, user_id: str, email: Optional[str] = None) -> str:
        """Create a Stripe customer tagged with the internal user id."""
        try:
            customer = stripe.Customer.create(
                email=email,
                metadata={"userId": user_id},
            )

            logger.info(
                "Created Stripe customer",
                extra={"user_id": user_id, "customer_id": customer.id},
            )

            return customer.id

        except Exception as e:
            logger.error(
                f"Failed to create Stripe customer: {str(e)}",
                extra={"user_id": user_id, "error": str(e)},
            )
            raise

    @trace_span
    async def retrieve_subscription(self, subscription_id: str) -> dict[str, Any]:
        """Retrieve a Stripe subscription with its items."""
        try:
            subscription = stripe.Subscription.retrieve(subscription_id)

            logger.info(
                "Retrieved Stripe subscription",
                extra={"subscription_id": subscription_id},
            )

            return subscription.to_dict()

        except Exception as e:
            logger.error(
                f"Failed to retrieve subscription: {str(e)}",
                extra={"subscription_id": subscription_id, "error": str(e)},
            )
            raise


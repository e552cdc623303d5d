# Test data and payload builders
from typing import Optional

PERIOD_START = 1_760_000_000
PERIOD_END = 1_762_592_000


def make_stripe_subscription(
    subscription_id: str = "sub_1",
    customer: str = "cus_1",
    status: str = "active",
    price_id: str = "price_1",
    metadata: Optional[dict] = None,
    period_start: Optional[int] = PERIOD_START,
    period_end: Optional[int] = PERIOD_END,
    **extra,
) -> dict:
    """Build a Stripe subscription object as delivered in webhooks."""
    subscription = {
        "id": subscription_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "items": {"object": "list", "data": [{"id": "si_1", "price": {"id": price_id}}]},
        "cancel_at_period_end": False,
        "canceled_at": None,
        "metadata": metadata if metadata is not None else {},
    }
    if period_start is not None:
        subscription["current_period_start"] = period_start
    if period_end is not None:
        subscription["current_period_end"] = period_end
    subscription.update(extra)
    return subscription


def make_checkout_session(
    subscription="sub_1", metadata: Optional[dict] = None, customer="cus_1"
) -> dict:
    """Build a completed Stripe checkout session."""
    return {
        "id": "cs_1",
        "object": "checkout.session",
        "customer": customer,
        "subscription": subscription,
        "metadata": metadata
        if metadata is not None
        else {"userId": "u1", "planType": "PRO"},
    }

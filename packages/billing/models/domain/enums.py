"""
Billing enums - strongly typed enumerations for plans and subscription states.
"""

from enum import Enum


class PlanType(str, Enum):
    """
    Subscription plans, totally ordered by rank.

    "At least this plan" checks compare ranks, so a PRO user passes a
    STARTER check.
    """

    FREE = "FREE"
    STARTER = "STARTER"
    PRO = "PRO"

    @property
    def rank(self) -> int:
        return _PLAN_RANKS[self]

    def includes(self, required: "PlanType") -> bool:
        """True if this plan satisfies a check for required."""
        return self.rank >= required.rank


_PLAN_RANKS = {
    PlanType.FREE: 0,
    PlanType.STARTER: 1,
    PlanType.PRO: 2,
}


class SubscriptionStatus(str, Enum):
    """
    Internal subscription status.

    Flow: NONE -> INCOMPLETE | TRIALING | ACTIVE -> PAST_DUE -> ACTIVE | CANCELED
    """

    NONE = "NONE"  # Never subscribed
    INCOMPLETE = "INCOMPLETE"  # First payment pending
    TRIALING = "TRIALING"
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"  # Payment failed, retries pending
    CANCELED = "CANCELED"  # Terminal

    def grants_access(self) -> bool:
        """Check if this status allows paid feature access."""
        return self in (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING)


class ResourceType(str, Enum):
    """Quota-limited resources."""

    ARTICLE = "article"
    SUMMARY = "summary"
    NOTE = "note"

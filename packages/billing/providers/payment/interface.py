"""
Interface for payment providers.

Abstracts the billing platform calls the sync and entitlement services make.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class PaymentProviderInterface(ABC):
    """Abstract interface for payment providers."""

    @abstractmethod
    async def create_customer(self, user_id: str, email: Optional[str] = None) -> str:
        """
        Create a customer in the payment provider.

        Args:
            user_id: Internal user ID, stored on the customer as metadata
            email: Customer email

        Returns:
            customer_id: Payment provider customer ID
        """
        pass

    @abstractmethod
    async def retrieve_subscription(self, subscription_id: str) -> dict[str, Any]:
        """
        Fetch the live subscription object with its line items.

        Used when a webhook only carries the subscription id, or carries an
        object without line items.

        Returns:
            The subscription as a plain dict in the provider's wire shape
        """
        pass


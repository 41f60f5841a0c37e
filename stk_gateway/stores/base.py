"""
Abstract correlation store interface.

The gateway core never persists anything itself. Whatever links a
CheckoutRequestID back to a merchant order (a database table, a cache) is
injected through this interface so a later callback or poll can be matched
to the order that started it.
"""

from abc import ABC, abstractmethod
from typing import Optional

from stk_gateway.models.domain import TransactionStatus


class CorrelationStore(ABC):
    """Key-value mapping from CheckoutRequestID to the merchant's order."""

    @abstractmethod
    async def put(self, checkout_request_id: str, order_ref: str) -> None:
        """Remember which order an accepted STK push belongs to."""
        ...

    @abstractmethod
    async def get(self, checkout_request_id: str) -> Optional[str]:
        """Return the order reference, or None if the ID is unknown."""
        ...

    @abstractmethod
    async def record_status(self, status: TransactionStatus) -> bool:
        """
        Record a reconciled outcome for a checkout.

        Only terminal outcomes are stored and the first one wins, so a
        redelivered callback cannot overwrite a settled payment.

        Returns:
            True if the outcome was stored, False if it was ignored.
        """
        ...

"""
Domain records passed between the gateway components.

These are plain dataclasses: the core keeps no persistent state of its own,
so none of them map to database rows.
"""

from dataclasses import dataclass
from typing import Optional

from stk_gateway.models.enums import TransactionState


@dataclass(frozen=True)
class PaymentRequest:
    """A validated merchant payment request. Exists only for one initiation call."""

    amount: float
    phone_number: str  # canonical MSISDN, e.g. 254712345678
    account_reference: str
    transaction_desc: str


@dataclass(frozen=True)
class CheckoutCorrelation:
    """The only handle linking a later callback or poll to its payment."""

    merchant_request_id: str
    checkout_request_id: str


@dataclass
class PaymentResult:
    """
    Synchronous acknowledgment of an STK push.

    success=True means the prompt was sent to the phone, not that the
    customer paid. Settlement arrives later via callback or poll.
    """

    success: bool
    transaction_id: str  # MerchantRequestID
    checkout_request_id: str
    message: str
    customer_message: Optional[str] = None
    response_code: str = ""

    @property
    def correlation(self) -> CheckoutCorrelation:
        return CheckoutCorrelation(
            merchant_request_id=self.transaction_id,
            checkout_request_id=self.checkout_request_id,
        )


@dataclass
class TransactionStatus:
    """Canonical outcome record produced by both reconciliation paths."""

    transaction_id: str
    status: TransactionState
    amount: float = 0
    phone_number: str = ""
    checkout_request_id: str = ""
    mpesa_receipt_number: Optional[str] = None
    transaction_date: Optional[str] = None
    error_message: Optional[str] = None
    result_code: Optional[int] = None

"""Enumerations for the STK push payment domain."""

from enum import Enum


class TransactionState(str, Enum):
    """Outcome of an STK push transaction.

    PENDING is a sentinel meaning "no definitive signal observed yet";
    the other three are terminal.
    """

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionState.PENDING


class TransactionType(str, Enum):
    """Daraja STK push transaction types."""

    PAYBILL = "CustomerPayBillOnline"
    BUY_GOODS = "CustomerBuyGoodsOnline"


class ResultCode(int, Enum):
    """Provider result codes with special meaning."""

    SUCCESS = 0
    CANCELLED_BY_USER = 1032


# errorCode returned (with HTTP 500) by the query endpoint while the
# customer has not yet answered the prompt
STILL_PROCESSING_ERROR_CODE = "500.001.1001"

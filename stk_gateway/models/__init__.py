from stk_gateway.models.domain import CheckoutCorrelation, PaymentRequest, PaymentResult, TransactionStatus
from stk_gateway.models.enums import ResultCode, TransactionState, TransactionType
from stk_gateway.models.payment import Base, PaymentEvent, PaymentOrder

__all__ = [
    "Base",
    "PaymentOrder",
    "PaymentEvent",
    "PaymentRequest",
    "PaymentResult",
    "CheckoutCorrelation",
    "TransactionStatus",
    "TransactionState",
    "TransactionType",
    "ResultCode",
]

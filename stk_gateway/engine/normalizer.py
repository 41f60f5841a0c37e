"""
Phone number and amount normalisation for merchant-supplied input.

Before anything reaches the provider we:
  1. Canonicalise the phone number to 254XXXXXXXXX (Safaricom 07xx / 01xx)
  2. Check the amount is finite and within the provider's KES limits
  3. Check account reference and description fit the provider's field limits

Failures raise FormatError naming the offending field. Nothing is coerced
beyond the documented phone rewrite.
"""

import math
import re
from typing import Any, Optional

from stk_gateway.config import settings
from stk_gateway.engine.errors import FormatError
from stk_gateway.models.domain import PaymentRequest

COUNTRY_CODE = "254"
PHONE_PATTERN = re.compile(r"^(254|0)[17]\d{8}$")
_STRIP = re.compile(r"[\s\-+]")
REFERENCE_PATTERN = re.compile(r"^[A-Za-z0-9]+$")

ACCOUNT_REFERENCE_MAX = 12
TRANSACTION_DESC_MAX = 13


def normalize_phone(raw: str) -> str:
    """
    Canonicalise a Kenyan mobile number to MSISDN form.

    "0712 345-678" -> "254712345678"; "+254712345678" -> "254712345678".

    Raises:
        FormatError: Not a local (0[17]xxxxxxxx) or international
            (254[17]xxxxxxxx) Safaricom number.
    """
    cleaned = _STRIP.sub("", raw or "")
    if not PHONE_PATTERN.match(cleaned):
        raise FormatError(f"Invalid phone number format: {raw!r}", field="phone_number")
    if cleaned.startswith("0"):
        return COUNTRY_CODE + cleaned[1:]
    return cleaned


def validate_amount(
    amount: Any,
    lower: Optional[float] = None,
    upper: Optional[float] = None,
) -> bool:
    """True iff amount is a finite number within [lower, upper] KES (configured limits by default)."""
    lower = settings.min_amount if lower is None else lower
    upper = settings.max_amount if upper is None else upper
    if isinstance(amount, bool):
        return False
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and lower <= value <= upper


def build_payment_request(
    amount: Any,
    phone_number: str,
    account_reference: str,
    transaction_desc: str,
) -> PaymentRequest:
    """
    Validate merchant input and produce an immutable PaymentRequest.

    Raises:
        FormatError: On the first invalid field.
    """
    if not validate_amount(amount):
        raise FormatError(
            f"Amount must be between {settings.min_amount:g} and {settings.max_amount:g} KES",
            field="amount",
        )

    phone = normalize_phone(phone_number)

    reference = (account_reference or "").strip()
    if len(reference) > ACCOUNT_REFERENCE_MAX or not REFERENCE_PATTERN.match(reference):
        raise FormatError(
            f"Account reference must be 1-{ACCOUNT_REFERENCE_MAX} alphanumeric characters",
            field="account_reference",
        )

    description = (transaction_desc or "").strip()
    if not description or len(description) > TRANSACTION_DESC_MAX:
        raise FormatError(
            f"Transaction description must be 1-{TRANSACTION_DESC_MAX} characters",
            field="transaction_desc",
        )

    return PaymentRequest(
        amount=float(amount),
        phone_number=phone,
        account_reference=reference,
        transaction_desc=description,
    )

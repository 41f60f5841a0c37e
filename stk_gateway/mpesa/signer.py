"""
Lipa na M-Pesa Online request signing.

Every STK push and STK query carries a Password/Timestamp pair:

    Timestamp = YYYYMMDDHHmmss in the provider's wall-clock (EAT, UTC+3)
    Password  = base64(BusinessShortCode + Passkey + Timestamp)

The timestamp must be current for each call; a signature is never reused
between initiation and polling.
"""

import base64
from datetime import datetime, timedelta, timezone

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def provider_now(offset_hours: int = 3) -> datetime:
    """Current wall-clock time at the provider (Kenya observes no DST)."""
    return datetime.now(timezone(timedelta(hours=offset_hours)))


def sign(short_code: str, passkey: str, now: datetime) -> tuple[str, str]:
    """
    Derive the (password, timestamp) pair for a Daraja STK request.

    Args:
        short_code: Business short code (PayBill or till).
        passkey: Lipa na M-Pesa Online passkey.
        now: Wall-clock time to stamp the request with.

    Returns:
        Tuple of (base64 password, timestamp string).
    """
    timestamp = now.strftime(TIMESTAMP_FORMAT)
    raw = f"{short_code}{passkey}{timestamp}".encode("utf-8")
    password = base64.b64encode(raw).decode("ascii")
    return password, timestamp

"""
Immutable audit trail for STK push payments.

Every lifecycle step for a checkout gets an append-only entry with:
  - CheckoutRequestID (which payment)
  - Action (what happened)
  - Details (amounts, result codes, receipt numbers; never credentials)
  - Timestamp (UTC)

Entries are never modified or deleted. They answer "what did the provider
tell us, and when" when a customer disputes a charge.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from stk_gateway.models.payment import PaymentEvent

logger = logging.getLogger("stk_gateway.audit")


def log_event(
    session: AsyncSession,
    action: str,
    checkout_request_id: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> PaymentEvent:
    """
    Create an immutable audit log entry.

    Args:
        session: Database session (caller commits).
        action: What happened (e.g. "push_accepted", "status_recorded").
        checkout_request_id: The checkout this event relates to.
        details: Arbitrary context (serialized to JSON).

    Returns:
        The created PaymentEvent record.
    """
    entry = PaymentEvent(
        checkout_request_id=checkout_request_id,
        action=action,
        details=json.dumps(details, default=str) if details else None,
        timestamp=datetime.now(timezone.utc),
    )
    session.add(entry)
    logger.info(
        "AUDIT | checkout=%s action=%s | %s",
        checkout_request_id or "-",
        action,
        json.dumps(details, default=str)[:200] if details else "",
    )
    return entry

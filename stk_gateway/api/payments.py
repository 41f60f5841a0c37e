"""
Merchant-facing payment endpoints.

POST /payments/initiate                     — Send an STK push to a phone.
GET  /payments/status/{checkout_request_id} — Poll the provider for the outcome.
GET  /payments/{checkout_request_id}/trace  — Stored order plus its audit trail.
"""

import json
import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stk_gateway.api.dependencies import get_gateway, require_api_key
from stk_gateway.database import get_session
from stk_gateway.engine.gateway import Gateway
from stk_gateway.engine.normalizer import build_payment_request
from stk_gateway.models.payment import PaymentEvent, PaymentOrder

logger = logging.getLogger("stk_gateway.api.payments")

router = APIRouter(prefix="/payments", tags=["payments"], dependencies=[Depends(require_api_key)])


class InitiateRequest(BaseModel):
    amount: float
    phone_number: str
    account_reference: str
    transaction_desc: str


class ApiResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Any] = None
    timestamp: str


class OrderDetail(BaseModel):
    checkout_request_id: str
    order_reference: str
    merchant_request_id: Optional[str]
    status: str
    amount: Optional[float]
    phone_number: Optional[str]
    mpesa_receipt_number: Optional[str]
    transaction_date: Optional[str]
    result_code: Optional[int]
    error_message: Optional[str]
    created_at: Optional[str]
    settled_at: Optional[str]


class AuditEntry(BaseModel):
    id: int
    action: str
    details: Optional[dict] = None
    timestamp: Optional[str]


class PaymentTrace(BaseModel):
    order: OrderDetail
    audit_trail: list[AuditEntry]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _respond(success: bool, message: str, data: Any = None, status_code: int = 200) -> JSONResponse:
    body = ApiResponse(success=success, message=message, data=data, timestamp=_now())
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def _order_to_detail(o: PaymentOrder) -> OrderDetail:
    return OrderDetail(
        checkout_request_id=o.checkout_request_id,
        order_reference=o.order_reference,
        merchant_request_id=o.merchant_request_id,
        status=o.status,
        amount=o.amount,
        phone_number=o.phone_number,
        mpesa_receipt_number=o.mpesa_receipt_number,
        transaction_date=o.transaction_date,
        result_code=o.result_code,
        error_message=o.error_message,
        created_at=o.created_at.isoformat() if o.created_at else None,
        settled_at=o.settled_at.isoformat() if o.settled_at else None,
    )


@router.post("/initiate")
async def initiate_payment(body: InitiateRequest, gateway: Gateway = Depends(get_gateway)):
    """
    Send an STK push prompt to the customer's phone.

    A 200 means the prompt was sent, not that the customer paid. Use the
    returned checkout_request_id to poll, or wait for the callback.
    """
    request = build_payment_request(
        amount=body.amount,
        phone_number=body.phone_number,
        account_reference=body.account_reference,
        transaction_desc=body.transaction_desc,
    )

    result = await gateway.initiator.initiate(request)
    return _respond(
        success=result.success,
        message=result.message,
        data=asdict(result),
        status_code=200 if result.success else 400,
    )


@router.get("/status/{checkout_request_id}")
async def query_payment_status(checkout_request_id: str, gateway: Gateway = Depends(get_gateway)):
    """
    Poll the provider for a checkout's outcome.

    The provider does not report amount or phone on this path; use the
    order reference to look them up in your own records.
    """
    if not checkout_request_id.strip():
        raise HTTPException(status_code=400, detail="Checkout request ID is required")

    logger.info("Payment status query checkout_request_id=%s", checkout_request_id)
    status = await gateway.reconciler.query_status(checkout_request_id)

    if status.status.is_terminal:
        await gateway.store.record_status(status)

    data = asdict(status)
    data["order_reference"] = await gateway.store.get(checkout_request_id)
    return _respond(success=True, message="Payment status retrieved successfully", data=data)


@router.get("/{checkout_request_id}/trace", response_model=PaymentTrace)
async def get_payment_trace(checkout_request_id: str, session: AsyncSession = Depends(get_session)):
    """
    Full audit trail for a checkout.

    Returns the stored order plus every audit entry in chronological
    order: push accepted, outcomes recorded, duplicate deliveries ignored.
    """
    order = await session.get(PaymentOrder, checkout_request_id)
    if not order:
        raise HTTPException(status_code=404, detail=f"Payment not found: {checkout_request_id}")

    result = await session.execute(
        select(PaymentEvent)
        .where(PaymentEvent.checkout_request_id == checkout_request_id)
        .order_by(PaymentEvent.timestamp.asc(), PaymentEvent.id.asc())
    )
    events = result.scalars().all()

    audit_trail = []
    for event in events:
        details = None
        if event.details:
            try:
                details = json.loads(event.details)
            except (json.JSONDecodeError, TypeError):
                details = {"raw": event.details}

        audit_trail.append(AuditEntry(
            id=event.id,
            action=event.action,
            details=details,
            timestamp=event.timestamp.isoformat() if event.timestamp else None,
        ))

    return PaymentTrace(order=_order_to_detail(order), audit_trail=audit_trail)

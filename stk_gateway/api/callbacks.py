"""
Provider-facing STK callback endpoint.

POST /payments/callback/stk — Safaricom posts the push outcome here.

Always answers HTTP 200. The body is {"ResultCode": 0, "ResultDesc": "Accepted"}
when the outcome was processed and {"ResultCode": 1, "ResultDesc": "Failed"}
otherwise; a non-200 would make the provider redeliver.
"""

import json
import logging

from fastapi import APIRouter, Depends, Request

from stk_gateway.api.dependencies import get_gateway
from stk_gateway.engine.gateway import Gateway
from stk_gateway.engine.reconciler import ACK_FAILED, acknowledge_callback

logger = logging.getLogger("stk_gateway.api.callbacks")

router = APIRouter(prefix="/payments/callback", tags=["callbacks"])


@router.post("/stk")
async def stk_callback(request: Request, gateway: Gateway = Depends(get_gateway)):
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error("STK callback with unreadable body ip=%s: %s", request.client.host if request.client else "-", e)
        return dict(ACK_FAILED)

    status, ack = await acknowledge_callback(payload, gateway.reconciler, on_status=gateway.store.record_status)
    if status is not None:
        logger.info(
            "STK callback handled checkout_request_id=%s status=%s amount=%s",
            status.checkout_request_id,
            status.status.value,
            status.amount,
        )
    return ack

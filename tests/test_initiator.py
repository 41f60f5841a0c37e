"""Tests for the STK push initiator against a stubbed Daraja API."""

import base64
import json

import httpx
import pytest

from conftest import CALLBACK_URL, PASSKEY, SHORT_CODE, fixed_provider_clock
from stk_gateway.engine.errors import PaymentInitiationError
from stk_gateway.engine.initiator import PaymentInitiator
from stk_gateway.models.domain import PaymentRequest
from stk_gateway.mpesa.client import OAUTH_PATH, STK_PUSH_PATH
from stk_gateway.stores.memory import InMemoryCorrelationStore

REQUEST = PaymentRequest(
    amount=100,
    phone_number="254712345678",
    account_reference="ORDER123",
    transaction_desc="Payment",
)


@pytest.mark.asyncio
async def test_accepted_push_returns_success(initiator):
    result = await initiator.initiate(REQUEST)

    assert result.success is True
    assert result.checkout_request_id == "ws_CO_191220191020363925"
    assert result.transaction_id == "29115-34620561-1"
    assert result.message == "Payment request sent successfully"
    assert result.customer_message == "Success. Request accepted for processing"
    assert result.correlation.checkout_request_id == result.checkout_request_id
    assert result.correlation.merchant_request_id == result.transaction_id


@pytest.mark.asyncio
async def test_push_payload_and_headers(initiator, stub):
    await initiator.initiate(REQUEST)

    (call,) = stub.calls(STK_PUSH_PATH)
    assert call.method == "POST"
    assert call.headers["Authorization"] == "Bearer tok-abc123"

    body = json.loads(call.content)
    assert body["BusinessShortCode"] == SHORT_CODE
    assert body["Timestamp"] == "20240315143005"
    assert base64.b64decode(body["Password"]).decode() == f"{SHORT_CODE}{PASSKEY}20240315143005"
    assert body["TransactionType"] == "CustomerPayBillOnline"
    assert body["Amount"] == 100
    assert body["PartyA"] == "254712345678"
    assert body["PartyB"] == SHORT_CODE
    assert body["PhoneNumber"] == "254712345678"
    assert body["CallBackURL"] == CALLBACK_URL
    assert body["AccountReference"] == "ORDER123"
    assert body["TransactionDesc"] == "Payment"


@pytest.mark.asyncio
async def test_token_reused_across_initiations(initiator, stub):
    await initiator.initiate(REQUEST)
    await initiator.initiate(REQUEST)

    assert len(stub.calls(OAUTH_PATH)) == 1
    assert len(stub.calls(STK_PUSH_PATH)) == 2


@pytest.mark.asyncio
async def test_accepted_push_is_correlated(initiator, memory_store):
    result = await initiator.initiate(REQUEST)

    assert await memory_store.get(result.checkout_request_id) == "ORDER123"


@pytest.mark.asyncio
async def test_provider_rejection_is_a_result_not_an_error(initiator, stub, memory_store):
    stub.responses[STK_PUSH_PATH] = (200, {
        "MerchantRequestID": "",
        "CheckoutRequestID": "",
        "ResponseCode": "1",
        "ResponseDescription": "Invalid PhoneNumber",
    })

    result = await initiator.initiate(REQUEST)

    assert result.success is False
    assert result.message == "Invalid PhoneNumber"
    assert result.checkout_request_id == ""
    assert result.response_code == "1"
    assert await memory_store.get("") is None


@pytest.mark.asyncio
async def test_rejection_without_description_uses_default_message(initiator, stub):
    stub.responses[STK_PUSH_PATH] = (200, {"ResponseCode": "2"})

    result = await initiator.initiate(REQUEST)

    assert result.success is False
    assert result.message == "Payment request failed"
    assert result.transaction_id == ""


@pytest.mark.asyncio
async def test_http_error_raises_initiation_error(initiator, stub):
    stub.responses[STK_PUSH_PATH] = (400, {
        "requestId": "abc",
        "errorCode": "400.002.02",
        "errorMessage": "Bad Request - Invalid Amount",
    })

    with pytest.raises(PaymentInitiationError) as exc_info:
        await initiator.initiate(REQUEST)
    assert "Invalid Amount" in str(exc_info.value)


@pytest.mark.asyncio
async def test_transport_error_raises_initiation_error(initiator, stub):
    stub.responses[STK_PUSH_PATH] = httpx.ReadTimeout("timed out")

    with pytest.raises(PaymentInitiationError) as exc_info:
        await initiator.initiate(REQUEST)
    assert isinstance(exc_info.value.__cause__, httpx.ReadTimeout)


@pytest.mark.asyncio
async def test_auth_failure_raises_initiation_error(initiator, stub):
    stub.responses[OAUTH_PATH] = (401, {"errorMessage": "Invalid credentials"})

    with pytest.raises(PaymentInitiationError):
        await initiator.initiate(REQUEST)
    assert stub.calls(STK_PUSH_PATH) == []


@pytest.mark.asyncio
async def test_fractional_amount_sent_as_is(initiator, stub):
    await initiator.initiate(PaymentRequest(
        amount=150.5,
        phone_number="254712345678",
        account_reference="ORDER123",
        transaction_desc="Payment",
    ))

    body = json.loads(stub.calls(STK_PUSH_PATH)[0].content)
    assert body["Amount"] == 150.5


class LockedStore(InMemoryCorrelationStore):
    async def put(self, checkout_request_id, order_ref):
        raise RuntimeError("database is locked")


@pytest.mark.asyncio
async def test_store_failure_still_returns_checkout_id(daraja, token_cache, stub, caplog):
    initiator = PaymentInitiator(
        daraja,
        token_cache,
        short_code=SHORT_CODE,
        passkey=PASSKEY,
        callback_url=CALLBACK_URL,
        correlation_store=LockedStore(),
        clock=fixed_provider_clock,
    )

    result = await initiator.initiate(REQUEST)

    assert result.success is True
    assert result.checkout_request_id == "ws_CO_191220191020363925"
    assert len(stub.calls(STK_PUSH_PATH)) == 1
    assert "Failed to record accepted STK push" in caplog.text
    assert "ws_CO_191220191020363925" in caplog.text

"""
Status reconciler — learns how an STK push ended.

Two independent paths produce the same TransactionStatus shape:

  Poll path      query_status(checkout_request_id) asks the provider's
                 /mpesa/stkpushquery/v1/query endpoint.
  Callback path  process_callback(payload) transforms the envelope the
                 provider POSTs to our CallBackURL. Pure, no I/O.

Both map the provider's numeric ResultCode through status_for_result_code,
so the same code yields the same status whichever path observed it.

The provider-facing callback endpoint must always answer HTTP 200, or the
provider redelivers. acknowledge_callback is the boundary adapter that turns
any failure in the transform (or in persisting its result) into the fixed
"Failed" acknowledgment instead of an exception.
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from stk_gateway.engine.errors import (
    AuthenticationError,
    CallbackPayloadError,
    ProviderHTTPError,
    StatusQueryError,
)
from stk_gateway.models.domain import TransactionStatus
from stk_gateway.models.enums import STILL_PROCESSING_ERROR_CODE, ResultCode, TransactionState
from stk_gateway.mpesa.client import DarajaClient
from stk_gateway.mpesa.signer import provider_now, sign
from stk_gateway.mpesa.token_cache import TokenCache

logger = logging.getLogger("stk_gateway.reconciler")

ACK_ACCEPTED = {"ResultCode": 0, "ResultDesc": "Accepted"}
ACK_FAILED = {"ResultCode": 1, "ResultDesc": "Failed"}


def status_for_result_code(code: Union[int, str]) -> TransactionState:
    """
    Map a provider ResultCode to a terminal state.

    Total and pure: 0 -> success, 1032 -> cancelled, anything else -> failed.
    The query endpoint sends codes as strings, the callback as integers.
    """
    try:
        value = int(str(code).strip())
    except (TypeError, ValueError):
        return TransactionState.FAILED

    if value == ResultCode.SUCCESS:
        return TransactionState.SUCCESS
    if value == ResultCode.CANCELLED_BY_USER:
        return TransactionState.CANCELLED
    return TransactionState.FAILED


# ---------------------------------------------------------------------------
# Callback envelope
# ---------------------------------------------------------------------------


class CallbackItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    Name: str
    Value: Any = None


class MetadataBlock(BaseModel):
    model_config = ConfigDict(extra="allow")

    Item: list[CallbackItem] = Field(default_factory=list)


class StkCallback(BaseModel):
    model_config = ConfigDict(extra="allow")

    MerchantRequestID: str = ""
    CheckoutRequestID: str = ""
    ResultCode: int
    ResultDesc: str = ""
    CallbackMetadata: Optional[MetadataBlock] = None

    @field_validator("MerchantRequestID", "CheckoutRequestID", "ResultDesc", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class CallbackBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    stkCallback: StkCallback


class CallbackEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    Body: CallbackBody


def _metadata_values(callback: StkCallback) -> dict[str, Any]:
    if callback.CallbackMetadata is None:
        return {}
    return {item.Name: item.Value for item in callback.CallbackMetadata.Item}


def _as_amount(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Unparseable callback Amount %r, leaving 0", value)
        return 0


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------


class StatusReconciler:
    """Resolves checkout outcomes by polling or from provider callbacks."""

    def __init__(
        self,
        client: DarajaClient,
        token_cache: TokenCache,
        short_code: str,
        passkey: str,
        clock: Callable[[], datetime] = provider_now,
    ):
        self._client = client
        self._tokens = token_cache
        self._short_code = short_code
        self._passkey = passkey
        self._clock = clock

    async def query_status(self, checkout_request_id: str) -> TransactionStatus:
        """
        Poll the provider for the outcome of a checkout.

        Amount and phone number are not part of the query response and come
        back as 0 / "". A checkout the provider is still processing comes
        back as PENDING; poll again later.

        Raises:
            StatusQueryError: Token, transport or HTTP failure.
        """
        password, timestamp = sign(self._short_code, self._passkey, self._clock())
        payload = {
            "BusinessShortCode": self._short_code,
            "Password": password,
            "Timestamp": timestamp,
            "CheckoutRequestID": checkout_request_id,
        }

        try:
            token = await self._tokens.get_token()
            data = await self._client.stk_query(payload, token)
        except ProviderHTTPError as e:
            if e.error_code == STILL_PROCESSING_ERROR_CODE:
                logger.info("Checkout %s still being processed", checkout_request_id)
                return self._pending(checkout_request_id, e.payload.get("errorMessage"))
            logger.error("Status query failed checkout_request_id=%s: %s", checkout_request_id, e)
            raise StatusQueryError(f"Status query failed: {e}") from e
        except (AuthenticationError, httpx.HTTPError) as e:
            logger.error("Status query failed checkout_request_id=%s: %s", checkout_request_id, e)
            raise StatusQueryError(f"Status query failed: {e}") from e

        raw_code = data.get("ResultCode")
        if raw_code is None or str(raw_code).strip() == "":
            # Query acknowledged but no outcome yet
            return self._pending(checkout_request_id, data.get("ResponseDescription"))

        state = status_for_result_code(raw_code)
        status = TransactionStatus(
            transaction_id=data.get("MerchantRequestID") or "",
            checkout_request_id=data.get("CheckoutRequestID") or checkout_request_id,
            status=state,
            amount=0,
            phone_number="",
            error_message=None if state is TransactionState.SUCCESS else data.get("ResultDesc"),
            result_code=_int_or_none(raw_code),
        )
        logger.info(
            "Polled checkout %s: result_code=%s status=%s",
            status.checkout_request_id,
            raw_code,
            state.value,
        )
        return status

    @staticmethod
    def _pending(checkout_request_id: str, message: Optional[str]) -> TransactionStatus:
        return TransactionStatus(
            transaction_id="",
            checkout_request_id=checkout_request_id,
            status=TransactionState.PENDING,
            error_message=message,
        )

    def process_callback(self, payload: Any) -> TransactionStatus:
        """
        Transform a provider callback envelope into a TransactionStatus.

        Missing metadata items leave their fields at zero values. Receipt
        number and transaction date are only reported for successful payments.

        Raises:
            CallbackPayloadError: The payload is not a Body.stkCallback envelope.
        """
        try:
            envelope = CallbackEnvelope.model_validate(payload)
        except ValidationError as e:
            raise CallbackPayloadError(f"Malformed STK callback: {e.error_count()} validation error(s)") from e

        callback = envelope.Body.stkCallback
        state = status_for_result_code(callback.ResultCode)

        logger.info(
            "Processing STK callback merchant_request_id=%s checkout_request_id=%s result_code=%s",
            callback.MerchantRequestID,
            callback.CheckoutRequestID,
            callback.ResultCode,
        )

        status = TransactionStatus(
            transaction_id=callback.MerchantRequestID,
            checkout_request_id=callback.CheckoutRequestID,
            status=state,
            result_code=callback.ResultCode,
        )

        if state is TransactionState.SUCCESS:
            values = _metadata_values(callback)
            status.amount = _as_amount(values.get("Amount"))
            status.phone_number = _as_text(values.get("PhoneNumber"))
            status.mpesa_receipt_number = _as_text(values.get("MpesaReceiptNumber"))
            status.transaction_date = _as_text(values.get("TransactionDate"))
        else:
            status.error_message = callback.ResultDesc

        logger.info(
            "STK callback processed checkout_request_id=%s status=%s amount=%s receipt=%s",
            status.checkout_request_id,
            status.status.value,
            status.amount,
            status.mpesa_receipt_number or "-",
        )
        return status


def _int_or_none(code: Any) -> Optional[int]:
    try:
        return int(str(code).strip())
    except (TypeError, ValueError):
        return None


async def acknowledge_callback(
    payload: Any,
    reconciler: StatusReconciler,
    on_status: Optional[Callable[[TransactionStatus], Awaitable[Any]]] = None,
) -> tuple[Optional[TransactionStatus], dict[str, Any]]:
    """
    Boundary adapter for the provider-facing callback endpoint.

    Never raises: any failure while transforming the payload or running the
    on_status hook (e.g. persisting the outcome) yields the "Failed"
    acknowledgment, which the caller still returns with HTTP 200.

    Returns:
        (status or None, acknowledgment body)
    """
    try:
        status = reconciler.process_callback(payload)
        if on_status is not None:
            await on_status(status)
    except Exception as e:
        logger.exception("STK callback processing error: %s", e)
        return None, dict(ACK_FAILED)
    return status, dict(ACK_ACCEPTED)

"""
Payment initiator — sends the STK push.

For each merchant request:

  1. Acquire a bearer token (shared TokenCache)
  2. Sign the request with a fresh Password/Timestamp
  3. POST the push to /mpesa/stkpush/v1/processrequest
  4. Map the synchronous acknowledgment into a PaymentResult

The acknowledgment only says the prompt was queued on the customer's phone.
Settlement is learned later through the callback or by polling with the
returned CheckoutRequestID.

A provider-reported rejection (ResponseCode != "0") is a normal result.
Only transport, HTTP and authentication failures raise PaymentInitiationError.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

import httpx

from stk_gateway.engine.errors import AuthenticationError, PaymentInitiationError, ProviderHTTPError
from stk_gateway.models.domain import PaymentRequest, PaymentResult
from stk_gateway.models.enums import TransactionType
from stk_gateway.mpesa.client import DarajaClient
from stk_gateway.mpesa.signer import provider_now, sign
from stk_gateway.mpesa.token_cache import TokenCache
from stk_gateway.stores.base import CorrelationStore

logger = logging.getLogger("stk_gateway.initiator")

ACCEPTED_RESPONSE_CODE = "0"
SUCCESS_MESSAGE = "Payment request sent successfully"


def _provider_amount(amount: float) -> Any:
    # Daraja rejects "100.0" for whole-shilling amounts
    return int(amount) if float(amount).is_integer() else amount


class PaymentInitiator:
    """Orchestrates token, signature and the STK push call."""

    def __init__(
        self,
        client: DarajaClient,
        token_cache: TokenCache,
        short_code: str,
        passkey: str,
        callback_url: str,
        transaction_type: str = TransactionType.PAYBILL.value,
        correlation_store: Optional[CorrelationStore] = None,
        clock: Callable[[], datetime] = provider_now,
    ):
        self._client = client
        self._tokens = token_cache
        self._short_code = short_code
        self._passkey = passkey
        self._callback_url = callback_url
        self._transaction_type = transaction_type
        self._store = correlation_store
        self._clock = clock

    def build_payload(self, request: PaymentRequest) -> dict[str, Any]:
        password, timestamp = sign(self._short_code, self._passkey, self._clock())
        return {
            "BusinessShortCode": self._short_code,
            "Password": password,
            "Timestamp": timestamp,
            "TransactionType": self._transaction_type,
            "Amount": _provider_amount(request.amount),
            "PartyA": request.phone_number,
            "PartyB": self._short_code,
            "PhoneNumber": request.phone_number,
            "CallBackURL": self._callback_url,
            "AccountReference": request.account_reference,
            "TransactionDesc": request.transaction_desc,
        }

    async def initiate(self, request: PaymentRequest) -> PaymentResult:
        """
        Send an STK push for a validated payment request.

        Args:
            request: Normalised request (see engine.normalizer).

        Returns:
            PaymentResult; success=False when the provider declined the push.

        Raises:
            PaymentInitiationError: Token, transport or HTTP failure.
        """
        logger.info(
            "Initiating STK push phone=%s amount=%s reference=%s",
            request.phone_number,
            request.amount,
            request.account_reference,
        )

        try:
            token = await self._tokens.get_token()
            data = await self._client.stk_push(self.build_payload(request), token)
        except (AuthenticationError, ProviderHTTPError, httpx.HTTPError) as e:
            logger.error(
                "STK push error phone=%s amount=%s reference=%s: %s",
                request.phone_number,
                request.amount,
                request.account_reference,
                e,
            )
            raise PaymentInitiationError(f"Payment initiation failed: {e}") from e

        result = self._to_result(data)

        if result.success:
            logger.info(
                "STK push accepted merchant_request_id=%s checkout_request_id=%s",
                result.transaction_id,
                result.checkout_request_id,
            )
            if self._store is not None and result.checkout_request_id:
                # The prompt is already on the customer's phone; hand back the
                # checkout ID even if it could not be recorded.
                try:
                    await self._store.put(result.checkout_request_id, request.account_reference)
                except Exception as e:
                    logger.exception(
                        "Failed to record accepted STK push phone=%s amount=%s reference=%s "
                        "checkout_request_id=%s: %s",
                        request.phone_number,
                        request.amount,
                        request.account_reference,
                        result.checkout_request_id,
                        e,
                    )
        else:
            logger.warning(
                "STK push rejected code=%s description=%s phone=%s reference=%s",
                result.response_code or "-",
                result.message,
                request.phone_number,
                request.account_reference,
            )
        return result

    @staticmethod
    def _to_result(data: dict[str, Any]) -> PaymentResult:
        code = str(data.get("ResponseCode", "")).strip()
        merchant_id = data.get("MerchantRequestID") or ""
        checkout_id = data.get("CheckoutRequestID") or ""

        if code == ACCEPTED_RESPONSE_CODE:
            return PaymentResult(
                success=True,
                transaction_id=merchant_id,
                checkout_request_id=checkout_id,
                message=SUCCESS_MESSAGE,
                customer_message=data.get("CustomerMessage"),
                response_code=code,
            )

        return PaymentResult(
            success=False,
            transaction_id=merchant_id,
            checkout_request_id=checkout_id,
            message=data.get("ResponseDescription") or "Payment request failed",
            response_code=code,
        )

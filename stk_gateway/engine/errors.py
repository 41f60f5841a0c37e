"""
Error taxonomy for the payment lifecycle.

Transport and authentication failures are exceptions. Business outcomes
reported by the provider (ResponseCode != "0", non-zero ResultCode) are
normal return values and never raised.
"""

from typing import Any, Optional


class GatewayError(Exception):
    """Base exception for gateway failures surfaced to the HTTP boundary."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class ProviderHTTPError(GatewayError):
    """Non-2xx response from the Daraja API."""

    status_code = 502

    def __init__(self, message: str, http_status: int, payload: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.http_status = http_status
        self.payload = payload or {}

    @property
    def error_code(self) -> str:
        return str(self.payload.get("errorCode", ""))


class AuthenticationError(GatewayError):
    """OAuth token exchange failed or yielded no token."""

    status_code = 502


class PaymentInitiationError(GatewayError):
    """Transport or protocol failure calling the STK push endpoint."""

    status_code = 502


class StatusQueryError(GatewayError):
    """Transport or protocol failure calling the STK query endpoint."""

    status_code = 502


class FormatError(GatewayError):
    """Malformed merchant-supplied input (phone, amount, reference)."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class CallbackPayloadError(GatewayError):
    """Callback body is not a structurally valid stkCallback envelope."""

    status_code = 400

"""
Thin async HTTP client for the Safaricom Daraja API.

Wraps a shared httpx.AsyncClient with the three endpoints the gateway uses:

    GET  /oauth/v1/generate?grant_type=client_credentials   (Basic auth)
    POST /mpesa/stkpush/v1/processrequest                  (Bearer)
    POST /mpesa/stkpushquery/v1/query                      (Bearer)

Non-2xx responses raise ProviderHTTPError carrying the decoded body.
Transport errors (httpx.HTTPError) propagate unchanged so callers can wrap
them in the error type of their own operation.
"""

import base64
import logging
from typing import Any, Optional

import httpx

from stk_gateway.engine.errors import ProviderHTTPError

logger = logging.getLogger("stk_gateway.daraja")

OAUTH_PATH = "/oauth/v1/generate"
STK_PUSH_PATH = "/mpesa/stkpush/v1/processrequest"
STK_QUERY_PATH = "/mpesa/stkpushquery/v1/query"


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    """Render a credential for logs without exposing it."""
    if not value:
        return "-"
    return f"{value[:visible]}…"


def basic_auth_header(consumer_key: str, consumer_secret: str) -> str:
    credentials = f"{consumer_key}:{consumer_secret}".encode("utf-8")
    return "Basic " + base64.b64encode(credentials).decode("ascii")


def _decode(response: httpx.Response) -> dict[str, Any]:
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError:
        return {"raw": response.text[:500]}
    return data if isinstance(data, dict) else {"raw": data}


class DarajaClient:
    """Async client for the Daraja OAuth, STK push and STK query endpoints."""

    def __init__(self, http_client: httpx.AsyncClient, timeout: float = 30.0):
        self._http = http_client
        self._timeout = timeout

    async def generate_token(self, consumer_key: str, consumer_secret: str) -> dict[str, Any]:
        """Exchange consumer credentials for an OAuth bearer token."""
        response = await self._http.get(
            OAUTH_PATH,
            params={"grant_type": "client_credentials"},
            headers={"Authorization": basic_auth_header(consumer_key, consumer_secret)},
            timeout=self._timeout,
        )
        return self._check(response, "oauth")

    async def stk_push(self, payload: dict[str, Any], token: str) -> dict[str, Any]:
        return await self._post(STK_PUSH_PATH, payload, token, "stk_push")

    async def stk_query(self, payload: dict[str, Any], token: str) -> dict[str, Any]:
        return await self._post(STK_QUERY_PATH, payload, token, "stk_query")

    async def _post(self, path: str, payload: dict[str, Any], token: str, context: str) -> dict[str, Any]:
        logger.debug("Daraja %s request -> %s (token=%s)", context, path, mask_secret(token))
        response = await self._http.post(
            path,
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
            timeout=self._timeout,
        )
        return self._check(response, context)

    def _check(self, response: httpx.Response, context: str) -> dict[str, Any]:
        data = _decode(response)
        if response.is_success:
            logger.debug("Daraja %s response %d", context, response.status_code)
            return data

        logger.warning(
            "Daraja %s returned HTTP %d: errorCode=%s errorMessage=%s",
            context,
            response.status_code,
            data.get("errorCode", "-"),
            data.get("errorMessage", "-"),
        )
        raise ProviderHTTPError(
            f"Daraja {context} failed with HTTP {response.status_code}: "
            f"{data.get('errorMessage') or response.reason_phrase}",
            http_status=response.status_code,
            payload=data,
        )

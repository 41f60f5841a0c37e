"""Shared FastAPI dependencies: the wired gateway and API key auth."""

import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException, Request

from stk_gateway.config import settings
from stk_gateway.engine.gateway import Gateway

logger = logging.getLogger("stk_gateway.api")


def get_gateway(request: Request) -> Gateway:
    return request.app.state.gateway


async def require_api_key(
    request: Request,
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
) -> None:
    """Reject merchant calls without the configured X-API-Key. Disabled when no key is set."""
    expected = settings.api_key
    if not expected:
        return

    if not x_api_key:
        logger.warning("API request without API key path=%s ip=%s", request.url.path, _client_ip(request))
        raise HTTPException(status_code=401, detail="API key is required")

    if not hmac.compare_digest(x_api_key.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Invalid API key attempt path=%s ip=%s", request.url.path, _client_ip(request))
        raise HTTPException(status_code=401, detail="Invalid API key")


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "-"

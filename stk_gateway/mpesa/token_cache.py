"""
OAuth bearer token cache for the Daraja API.

One TokenCache is shared by every in-flight initiation and status query so
authentication is amortised across requests. The token is refreshed a safety
margin before the provider's advertised expiry (55 minutes for the usual
1-hour token).

Refresh is serialised by an asyncio.Lock with a second freshness check, so
callers that all find the token stale cause a single exchange. The cached
pair is replaced in one assignment after the exchange completes; a caller
cancelled mid-refresh leaves the previous token in place.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from stk_gateway.engine.errors import AuthenticationError, ProviderHTTPError
from stk_gateway.mpesa.client import DarajaClient, mask_secret

logger = logging.getLogger("stk_gateway.token_cache")

DEFAULT_TOKEN_LIFETIME = 3600


@dataclass(frozen=True)
class UpstreamToken:
    value: str
    expires_at: float  # in the cache's clock, seconds


class TokenCache:
    """Owns the process-wide (token, expiry) pair."""

    def __init__(
        self,
        client: DarajaClient,
        consumer_key: str,
        consumer_secret: str,
        refresh_margin: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self._consumer_key = consumer_key
        self._consumer_secret = consumer_secret
        self._refresh_margin = refresh_margin
        self._clock = clock
        self._token: Optional[UpstreamToken] = None
        self._lock = asyncio.Lock()

    @property
    def current(self) -> Optional[UpstreamToken]:
        return self._token

    def _fresh(self) -> Optional[UpstreamToken]:
        token = self._token
        if token is not None and token.expires_at > self._clock():
            return token
        return None

    async def get_token(self) -> str:
        """
        Return a valid bearer token, exchanging credentials if needed.

        Raises:
            AuthenticationError: The exchange failed or returned no token.
        """
        token = self._fresh()
        if token is not None:
            return token.value

        async with self._lock:
            # Another task may have refreshed while we waited
            token = self._fresh()
            if token is not None:
                return token.value

            self._token = await self._refresh()
            return self._token.value

    def invalidate(self) -> None:
        self._token = None

    async def _refresh(self) -> UpstreamToken:
        try:
            data = await self._client.generate_token(self._consumer_key, self._consumer_secret)
        except (httpx.HTTPError, ProviderHTTPError) as e:
            logger.error("Failed to get access token: %s", e)
            raise AuthenticationError(f"Authentication failed: {e}") from e

        value = data.get("access_token")
        if not value:
            logger.error("Token response carried no access_token")
            raise AuthenticationError("Authentication failed: no access_token in response")

        lifetime = _parse_lifetime(data.get("expires_in"))
        ttl = max(lifetime - self._refresh_margin, 0)
        token = UpstreamToken(value=value, expires_at=self._clock() + ttl)

        logger.info(
            "Access token obtained (%s), provider expires_in=%ss, refreshing in %ss",
            mask_secret(value),
            lifetime,
            int(ttl),
        )
        return token


def _parse_lifetime(raw) -> int:
    # Daraja sends expires_in as a string, e.g. "3599"
    try:
        lifetime = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_TOKEN_LIFETIME
    return lifetime if lifetime > 0 else DEFAULT_TOKEN_LIFETIME

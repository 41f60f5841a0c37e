"""Wires the payment lifecycle components around one shared HTTP client and token cache."""

from dataclasses import dataclass

import httpx

from stk_gateway.config import Settings
from stk_gateway.engine.initiator import PaymentInitiator
from stk_gateway.engine.reconciler import StatusReconciler
from stk_gateway.mpesa.client import DarajaClient
from stk_gateway.mpesa.signer import provider_now
from stk_gateway.mpesa.token_cache import TokenCache
from stk_gateway.stores.base import CorrelationStore


@dataclass
class Gateway:
    token_cache: TokenCache
    initiator: PaymentInitiator
    reconciler: StatusReconciler
    store: CorrelationStore


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.mpesa_base_url,
        timeout=settings.request_timeout_seconds,
        headers={"Accept": "application/json"},
    )


def build_gateway(settings: Settings, http_client: httpx.AsyncClient, store: CorrelationStore) -> Gateway:
    """Build initiator and reconciler sharing a single TokenCache."""
    client = DarajaClient(http_client, timeout=settings.request_timeout_seconds)
    token_cache = TokenCache(
        client,
        consumer_key=settings.mpesa_consumer_key,
        consumer_secret=settings.mpesa_consumer_secret,
        refresh_margin=settings.token_refresh_margin_seconds,
    )

    def clock():
        return provider_now(settings.provider_utc_offset_hours)

    initiator = PaymentInitiator(
        client,
        token_cache,
        short_code=settings.mpesa_business_short_code,
        passkey=settings.mpesa_passkey,
        callback_url=settings.stk_callback_url,
        transaction_type=settings.mpesa_transaction_type,
        correlation_store=store,
        clock=clock,
    )
    reconciler = StatusReconciler(
        client,
        token_cache,
        short_code=settings.mpesa_business_short_code,
        passkey=settings.mpesa_passkey,
        clock=clock,
    )
    return Gateway(token_cache=token_cache, initiator=initiator, reconciler=reconciler, store=store)

"""Shared test fixtures."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from stk_gateway.engine.initiator import PaymentInitiator
from stk_gateway.engine.reconciler import StatusReconciler
from stk_gateway.models.payment import Base
from stk_gateway.mpesa.client import OAUTH_PATH, STK_PUSH_PATH, STK_QUERY_PATH, DarajaClient
from stk_gateway.mpesa.token_cache import TokenCache
from stk_gateway.stores.memory import InMemoryCorrelationStore

BASE_URL = "https://sandbox.safaricom.co.ke"
SHORT_CODE = "174379"
PASSKEY = "test-passkey"
CALLBACK_URL = "https://gateway.example.com/api/v1/payments/callback/stk"
EAT = timezone(timedelta(hours=3))


class DarajaStub:
    """
    In-process stand-in for the Daraja API, served through httpx.MockTransport.

    Responses are configured per path as (status_code, json_body), as an
    exception instance to raise, or as a (possibly async) callable taking the
    request. Every request is recorded.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responses = {
            OAUTH_PATH: (200, {"access_token": "tok-abc123", "expires_in": "3599"}),
            STK_PUSH_PATH: (200, {
                "MerchantRequestID": "29115-34620561-1",
                "CheckoutRequestID": "ws_CO_191220191020363925",
                "ResponseCode": "0",
                "ResponseDescription": "Success. Request accepted for processing",
                "CustomerMessage": "Success. Request accepted for processing",
            }),
            STK_QUERY_PATH: (200, {
                "ResponseCode": "0",
                "ResponseDescription": "The service request has been accepted successsfully",
                "MerchantRequestID": "29115-34620561-1",
                "CheckoutRequestID": "ws_CO_191220191020363925",
                "ResultCode": "0",
                "ResultDesc": "The service request is processed successfully.",
            }),
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        configured = self.responses.get(request.url.path)
        if configured is None:
            return httpx.Response(404, json={"errorMessage": "not found"})
        if isinstance(configured, Exception):
            raise configured
        if callable(configured):
            # MockTransport awaits coroutine results
            return configured(request)
        status_code, body = configured
        return httpx.Response(status_code, json=body)

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]


class FakeClock:
    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def fixed_provider_clock():
    return datetime(2024, 3, 15, 14, 30, 5, tzinfo=EAT)


@pytest.fixture
def stub():
    return DarajaStub()


@pytest_asyncio.fixture
async def http_client(stub):
    async with httpx.AsyncClient(transport=httpx.MockTransport(stub.handler), base_url=BASE_URL) as client:
        yield client


@pytest.fixture
def daraja(http_client):
    return DarajaClient(http_client, timeout=5.0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def token_cache(daraja, clock):
    return TokenCache(daraja, "consumer-key", "consumer-secret", refresh_margin=300, clock=clock)


@pytest.fixture
def memory_store():
    return InMemoryCorrelationStore()


@pytest.fixture
def initiator(daraja, token_cache, memory_store):
    return PaymentInitiator(
        daraja,
        token_cache,
        short_code=SHORT_CODE,
        passkey=PASSKEY,
        callback_url=CALLBACK_URL,
        correlation_store=memory_store,
        clock=fixed_provider_clock,
    )


@pytest.fixture
def reconciler(daraja, token_cache):
    return StatusReconciler(daraja, token_cache, short_code=SHORT_CODE, passkey=PASSKEY, clock=fixed_provider_clock)


@pytest_asyncio.fixture
async def session_factory():
    """Fresh in-memory database per test."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


def make_callback(result_code=0, result_desc="The service request is processed successfully.", items=None,
                  checkout_id="ws_CO_191220191020363925"):
    callback = {
        "MerchantRequestID": "29115-34620561-1",
        "CheckoutRequestID": checkout_id,
        "ResultCode": result_code,
        "ResultDesc": result_desc,
    }
    if items is not None:
        callback["CallbackMetadata"] = {"Item": items}
    return {"Body": {"stkCallback": callback}}


SUCCESS_ITEMS = [
    {"Name": "Amount", "Value": 100},
    {"Name": "MpesaReceiptNumber", "Value": "NLJ7RT61SV"},
    {"Name": "Balance"},
    {"Name": "TransactionDate", "Value": 20191219102115},
    {"Name": "PhoneNumber", "Value": 254712345678},
]

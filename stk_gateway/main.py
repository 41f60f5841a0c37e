"""
STK Push Gateway — M-Pesa payment initiation API.

Fronts the Safaricom Daraja "Lipa na M-Pesa Online" API: merchants ask the
gateway to prompt a customer's phone for payment, then learn the outcome
from the provider's callback or by polling.

Start the server:
    uvicorn stk_gateway.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from stk_gateway import __version__
from stk_gateway.api.callbacks import router as callbacks_router
from stk_gateway.api.health import router as health_router
from stk_gateway.api.payments import router as payments_router
from stk_gateway.config import settings
from stk_gateway.database import async_session, init_db
from stk_gateway.engine.errors import FormatError, GatewayError
from stk_gateway.engine.gateway import build_gateway, create_http_client
from stk_gateway.stores.sql import SqlCorrelationStore

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger("stk_gateway")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database and the shared Daraja client; close the client on shutdown."""
    missing = settings.missing_credentials()
    if missing:
        logger.warning("Missing M-Pesa configuration: %s", ", ".join(missing))

    await init_db()
    http_client = create_http_client(settings)
    app.state.gateway = build_gateway(settings, http_client, SqlCorrelationStore(async_session))
    logger.info("STK gateway ready (environment=%s)", settings.mpesa_environment)
    try:
        yield
    finally:
        await http_client.aclose()


app = FastAPI(
    title="STK Push Gateway",
    description=(
        "Payment initiation gateway for M-Pesa STK Push. Sends push prompts, "
        "reconciles outcomes from provider callbacks or status polling, and "
        "keeps an audit trail per checkout."
    ),
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    if isinstance(exc, FormatError):
        logger.info("Rejected request %s: %s", request.url.path, exc)
    else:
        logger.error("Gateway error on %s: %s", request.url.path, exc)
    body = {"success": False, "message": str(exc)}
    if isinstance(exc, FormatError) and exc.field:
        body["field"] = exc.field
    return JSONResponse(status_code=exc.status_code, content=body)


app.include_router(health_router)
app.include_router(callbacks_router, prefix="/api/v1")
app.include_router(payments_router, prefix="/api/v1")

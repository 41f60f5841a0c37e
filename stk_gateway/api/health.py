"""Liveness endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter

from stk_gateway import __version__
from stk_gateway.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {
        "success": True,
        "message": "Payment gateway is healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": {
            "status": "UP",
            "environment": settings.mpesa_environment,
            "version": __version__,
        },
    }

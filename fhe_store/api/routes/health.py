"""
Health check endpoints
"""
from fastapi import APIRouter, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from ...core.database import test_connection
from ...schemas.health import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint to verify database connectivity and key state
    """
    lifecycle = request.app.state.lifecycle
    crypto = lifecycle.describe()

    if not await run_in_threadpool(test_connection, request.app.state.engine):
        raise HTTPException(status_code=503, detail="Database connection failed")
    if crypto["state"] != "ready":
        raise HTTPException(status_code=503, detail="Crypto context not initialized")

    return HealthResponse(status="healthy", database="connected", crypto_context=crypto)

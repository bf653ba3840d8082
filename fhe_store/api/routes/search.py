"""
Equality search endpoint
"""
import asyncio
import logging

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from ...core.exceptions import SearchCancelled
from ...schemas.values import (
    ErrorResponse, SearchMatch, SearchResponse, SkippedRecordResponse
)
from ...services import CancellationToken, StoreServices
from ..deps.services import get_services

router = APIRouter(tags=["search"])
logger = logging.getLogger(__name__)


@router.get(
    "/search/{value}",
    response_model=SearchResponse,
    responses={422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}, 504: {"model": ErrorResponse}},
)
async def search_values(
    value: int,
    services: StoreServices = Depends(get_services)
):
    """
    Find every stored record whose encrypted value equals ``value``

    The scan is linear in the number of stored records. It is abandoned
    once the configured timeout elapses and the request fails with 504.
    """
    token = CancellationToken(timeout=services.search_timeout)

    try:
        outcome = await asyncio.wait_for(
            run_in_threadpool(services.search.search_store, value, services.store, token),
            timeout=services.search_timeout,
        )
    except asyncio.TimeoutError:
        # the worker stops at its next record check
        token.cancel()
        raise SearchCancelled(f"Search exceeded {services.search_timeout:.1f}s")
    except asyncio.CancelledError:
        token.cancel()
        raise

    return SearchResponse(
        matches=[SearchMatch(id=record_id, value=value) for record_id in outcome.matches],
        count=len(outcome.matches),
        skipped=[
            SkippedRecordResponse(id=s.record_id, error=s.kind, reason=s.reason)
            for s in outcome.skipped
        ],
        scanned=outcome.scanned,
        search_time_ms=outcome.elapsed_ms,
    )

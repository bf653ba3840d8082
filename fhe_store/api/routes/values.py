"""
Store and retrieve endpoints
"""
import logging

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from ...core.exceptions import RecordNotFound
from ...schemas.values import ErrorResponse, RetrieveResponse, StoreRequest, StoreResponse
from ...services import StoreServices
from ..deps.services import get_services

router = APIRouter(tags=["values"])
logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


@router.post("/store", response_model=StoreResponse, responses=ERROR_RESPONSES)
async def store_value(
    request: StoreRequest,
    services: StoreServices = Depends(get_services)
):
    """
    Encrypt a plaintext integer and persist only its ciphertext
    """
    # crypto and storage run as separate blocking calls off the event loop
    ciphertext = await run_in_threadpool(services.codec.encode, request.value)
    record_id = await run_in_threadpool(services.store.insert, ciphertext)
    logger.info(f"Stored encrypted value {record_id}")
    return StoreResponse(id=record_id)


@router.get("/retrieve/{record_id}", response_model=RetrieveResponse, responses=ERROR_RESPONSES)
async def retrieve_value(
    record_id: str,
    services: StoreServices = Depends(get_services)
):
    """
    Decrypt a stored value by its identifier
    """
    record = await run_in_threadpool(services.store.find_by_id, record_id)
    if record is None:
        raise RecordNotFound(f"Document {record_id} not found")

    value = await run_in_threadpool(services.codec.decode, record.ciphertext)
    return RetrieveResponse(id=record.id, value=value)

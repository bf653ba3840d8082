"""
Pydantic schemas for API request/response models
"""
from .values import (
    StoreRequest, StoreResponse,
    RetrieveResponse,
    SearchMatch, SkippedRecordResponse, SearchResponse,
    ErrorResponse
)
from .health import HealthResponse

__all__ = [
    # Value schemas
    "StoreRequest",
    "StoreResponse",
    "RetrieveResponse",
    # Search schemas
    "SearchMatch",
    "SkippedRecordResponse",
    "SearchResponse",
    # Common
    "ErrorResponse",
    "HealthResponse",
]

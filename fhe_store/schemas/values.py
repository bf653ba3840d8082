"""
Pydantic schemas for the store / retrieve / search endpoints
"""
from typing import List
from pydantic import BaseModel, Field, StrictInt


# ============= STORE =============

class StoreRequest(BaseModel):
    """Plaintext integer to encrypt and persist"""
    value: StrictInt


class StoreResponse(BaseModel):
    """Identifier assigned to the stored ciphertext"""
    success: bool = True
    id: str


# ============= RETRIEVE =============

class RetrieveResponse(BaseModel):
    """Decrypted value of one stored record"""
    id: str
    value: int


# ============= SEARCH =============

class SearchMatch(BaseModel):
    """A record whose encrypted value equals the query"""
    id: str
    value: int


class SkippedRecordResponse(BaseModel):
    """A record the scan could not evaluate"""
    id: str
    error: str
    reason: str


class SearchResponse(BaseModel):
    """Equality search result"""
    success: bool = True
    matches: List[SearchMatch]
    count: int
    skipped: List[SkippedRecordResponse] = Field(default_factory=list)
    scanned: int
    search_time_ms: float


# ============= ERRORS =============

class ErrorResponse(BaseModel):
    """Error body returned for every failed request"""
    error: str
    detail: str

"""
Pydantic schema for the health endpoint
"""
from typing import Any, Dict
from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Service status"""
    status: str
    database: str
    crypto_context: Dict[str, Any]

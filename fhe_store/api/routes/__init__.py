"""
API routes for the encrypted value store
"""
from fastapi import APIRouter

from .health import router as health_router
from .values import router as values_router
from .search import router as search_router

# Main API router
api_router = APIRouter()

# Include all route modules
api_router.include_router(health_router)
api_router.include_router(values_router)
api_router.include_router(search_router)

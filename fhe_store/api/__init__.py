"""
HTTP layer: routers, dependencies, error translation and middleware
"""
from .routes import api_router
from .errors import register_error_handlers
from .middleware import register_timing_middleware

__all__ = ["api_router", "register_error_handlers", "register_timing_middleware"]

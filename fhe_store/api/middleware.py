"""
Request timing and memory middleware
"""
import logging
import time
import tracemalloc
from typing import Optional

from fastapi import FastAPI, Request

logger = logging.getLogger("fhe_store.requests")


def traced_memory() -> Optional[int]:
    """Bytes currently allocated by Python, or None when tracemalloc is off"""
    if not tracemalloc.is_tracing():
        return None
    return tracemalloc.get_traced_memory()[0]


def register_timing_middleware(app: FastAPI):
    """Log ``METHOD path - X.XXX ms, Y.YYY KB`` for every request"""

    @app.middleware("http")
    async def log_request_usage(request: Request, call_next):
        start = time.perf_counter()
        start_memory = traced_memory()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Process-Time-Ms"] = f"{elapsed_ms:.3f}"

        end_memory = traced_memory()
        if start_memory is not None and end_memory is not None:
            memory_kb = (end_memory - start_memory) / 1024
            response.headers["X-Memory-Delta-KB"] = f"{memory_kb:.3f}"
            logger.info(
                f"{request.method} {request.url.path} - {elapsed_ms:.3f} ms, "
                f"{memory_kb:.3f} KB ({response.status_code})"
            )
        else:
            logger.info(f"{request.method} {request.url.path} - {elapsed_ms:.3f} ms ({response.status_code})")
        return response

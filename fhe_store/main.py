"""
Main FastAPI application for the Encrypted Value Store
"""
import logging
import tracemalloc
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from .core.config import Settings, settings
from .core.database import build_engine, create_tables
from .api import api_router, register_error_handlers, register_timing_middleware
from .services import (
    ContextLifecycleManager, ContextPersistence, EncryptedRecordStore, StoreServices
)

logger = logging.getLogger(__name__)


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application; the crypto context is acquired on startup

    A present-but-unusable key file makes startup fail, so the server never
    serves requests with keys it cannot verify.
    """
    app_settings = app_settings or settings

    app = FastAPI(
        title=app_settings.APP_NAME,
        description=app_settings.APP_DESCRIPTION,
        version=app_settings.APP_VERSION,
        debug=app_settings.DEBUG
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure as needed
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_timing_middleware(app)
    register_error_handlers(app)

    # Include API routes
    app.include_router(api_router)

    engine = build_engine(app_settings.database_url)
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    lifecycle = ContextLifecycleManager(
        ContextPersistence(app_settings.FHE_KEY_FILE, passphrase=app_settings.FHE_KEY_PASSPHRASE),
        default_parameters=app_settings.scheme_parameters(),
    )
    store = EncryptedRecordStore(session_factory)

    app.state.settings = app_settings
    app.state.engine = engine
    app.state.lifecycle = lifecycle
    app.state.services = None
    app.state.started_tracemalloc = False

    @app.on_event("startup")
    async def startup_event():
        """Create tables, then restore or generate the crypto context"""
        create_tables(engine)
        app.state.services = await run_in_threadpool(
            StoreServices.build, lifecycle, store, app_settings.SEARCH_TIMEOUT_SECONDS
        )
        if app_settings.TRACK_REQUEST_MEMORY and not tracemalloc.is_tracing():
            tracemalloc.start()
            app.state.started_tracemalloc = True
        logger.info(f"{app_settings.APP_NAME} ready (key file {app_settings.FHE_KEY_FILE})")

    @app.on_event("shutdown")
    async def shutdown_event():
        engine.dispose()
        if app.state.started_tracemalloc:
            tracemalloc.stop()
            app.state.started_tracemalloc = False

    return app


def run():
    """Console entry point"""
    import uvicorn

    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "fhe_store.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )


app = create_app()


if __name__ == "__main__":
    run()

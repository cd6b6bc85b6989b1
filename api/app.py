"""
FastAPI application factory for the data checker API.

Creates the app with:
- REST routes (parse records, extract a target, compare a record, save reports)
- Middleware stack
- Health check endpoint
- Lifespan management: builds the extraction orchestrator at startup and
  shuts the shared headless browser down at exit
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from shared.config import get_settings
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from api.dependencies import init_dependencies
from api.middleware import setup_middleware
from api.routes.checks import router as checks_router
from verifier.config import get_verifier_settings
from verifier.engine import ExtractionOrchestrator
from verifier.profiles import SiteProfileStore

logger = get_logger(__name__)


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing without a browser."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Startup wires the orchestrator; shutdown is the only place the shared
    browser engine is closed.
    """
    settings = get_settings()
    setup_logging("api")
    start_metrics_server()

    store = SiteProfileStore(settings.sites_dir)
    orchestrator = ExtractionOrchestrator(store, get_verifier_settings())
    init_dependencies(orchestrator)

    logger.info(
        "api_service_started",
        host=settings.api_host,
        port=settings.api_port,
        sites_dir=str(settings.sites_dir),
        profiles=len(store.keys()),
    )

    try:
        yield
    finally:
        await orchestrator.close()
        init_dependencies(None)
        logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing without a browser."""
    app = FastAPI(
        title="Data Checker API",
        description="Verify vehicle listing records against live third-party sources",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)

    app.include_router(checks_router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    return app


# For running with uvicorn directly
app = create_app()

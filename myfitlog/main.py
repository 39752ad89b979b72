"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from myfitlog.api.v1.router import api_router
from myfitlog.core.config import get_settings
from myfitlog.core.database import init_db
from myfitlog.core.session import close_redis
from myfitlog.observability import RequestLoggingMiddleware, get_metrics_backend
from myfitlog.services.stopwatch import StopwatchRegistry

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan events."""
    # Startup
    logging.basicConfig(level=settings.log_level.upper())
    logger.info("Starting %s %s", settings.app_name, settings.app_version)
    if settings.debug:
        await init_db()
    yield
    # Shutdown: no tick task may outlive the app
    await app.state.stopwatches.close_all()
    await close_redis()
    logger.info("Shut down %s", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    openapi_url=f"{settings.api_prefix}/openapi.json",
    docs_url=f"{settings.api_prefix}/docs",
    redoc_url=f"{settings.api_prefix}/redoc",
    lifespan=lifespan,
)

app.state.stopwatches = StopwatchRegistry()

metrics_backend = get_metrics_backend()

# Note: When allow_credentials=True, allow_origins cannot be ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware, metrics=metrics_backend)

app.include_router(api_router, prefix=settings.api_prefix)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.app_version}


@app.get("/metrics", include_in_schema=False)
async def metrics() -> PlainTextResponse:
    """Prometheus-style metrics endpoint."""
    return PlainTextResponse(metrics_backend.render_prometheus())

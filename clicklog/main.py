"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
from urllib.parse import urlencode

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from clicklog.api import geo_router, reports_router, track_router
from clicklog.core.config import get_settings
from clicklog.core.database import create_engine
from clicklog.core.middleware import SecurityHeadersMiddleware
from clicklog.core.observability import (
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    setup_observability,
)
from clicklog.core.rate_limit import limiter
from clicklog.services.click_store import ClickStore
from clicklog.services.geoip import ApproximateLocator

settings = get_settings()

# Get logger (will be configured by setup_observability)
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    logger.info("Starting Clicklog", version=settings.app_version)

    store = ClickStore(create_engine(settings.database_url, echo=settings.debug))
    added = await store.migrate()
    logger.info("Click store ready", added_columns=added)

    locator = ApproximateLocator(
        geoip_database_path=settings.geoip_database_path,
        ip_api_fallback=settings.ip_api_fallback,
    )

    app.state.click_store = store
    app.state.locator = locator

    yield

    logger.info("Shutting down Clicklog")
    locator.close()
    await store.close()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Click tracking with browser location enrichment",
    lifespan=lifespan,
)

# Set up observability (logging, tracing, metrics, Sentry)
setup_observability(app)

# Rate limiter state and exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Middleware stack (order matters - first added = outermost = runs last on request, first on response)

app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(RequestIDMiddleware)

app.add_middleware(
    SecurityHeadersMiddleware,
    enable_hsts=not settings.debug,
)

# CORS middleware (innermost - runs first on request)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
    expose_headers=["X-Request-ID"],
)

app.include_router(track_router)
app.include_router(geo_router)
app.include_router(reports_router)


@app.get("/healthz", include_in_schema=False)
async def health_check() -> PlainTextResponse:
    """Health check endpoint."""
    return PlainTextResponse("OK")


@app.get("/", include_in_schema=False)
async def root() -> PlainTextResponse:
    """Usage hint."""
    base = settings.base_url.rstrip("/")
    example = f"{base}/track?{urlencode({'u': settings.redirect_default})}"
    return PlainTextResponse(
        "Tracking server is running.\n\n"
        f"Use: {example}\n"
        f"Admin: {base}/admin?key=********"
    )

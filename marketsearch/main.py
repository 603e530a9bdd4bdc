"""Marketplace search API main application module.

This module initializes the FastAPI application and configures
core middleware, routers, and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from marketsearch.api.health import router as health_router
from marketsearch.api.middleware import error_body, setup_middleware
from marketsearch.api.search import router as search_router
from marketsearch.domain.exceptions import SearchError
from marketsearch.infrastructure.config import settings
from marketsearch.infrastructure.database import get_database
from marketsearch.infrastructure.logging import configure_logging

configure_logging(settings.log_level)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    The database connects lazily on the first request, so startup does not
    fail when the store is down.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    logger.info(
        "Starting marketplace search API",
        version=settings.api_version,
        debug=settings.debug,
    )

    yield

    logger.info("Shutting down marketplace search API")
    await get_database().dispose()


app = FastAPI(
    title="Marketplace Search API",
    description="Faceted product search for a B2B marketplace",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

# Setup custom middleware (request ID, error handling)
setup_middleware(app)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(search_router)


# ============================================================================
# Custom Exception Handlers
# ============================================================================


@app.exception_handler(SearchError)
async def search_error_handler(request: Request, exc: SearchError) -> JSONResponse:
    """Map search failures to a generic 500 without leaking store details."""
    request_id = getattr(request.state, "request_id", None)

    logger.error(
        "Search request failed",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=exc.message,
        details=exc.details,
    )

    return JSONResponse(
        status_code=500,
        content=error_body("Internal server error", "SEARCH_FAILED", request_id),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    request_id = getattr(request.state, "request_id", None)

    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error_code", "ERROR")
        message = detail.get("message", str(detail))
    else:
        error_code = "ERROR"
        message = str(detail)

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message, error_code, request_id),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with consistent format."""
    request_id = getattr(request.state, "request_id", None)

    logger.exception(
        "Unhandled exception in handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )

    return JSONResponse(
        status_code=500,
        content=error_body("Internal server error", "INTERNAL_ERROR", request_id),
    )

"""Health check endpoints.

Provides endpoints for monitoring service health and readiness.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from marketsearch.infrastructure.config import settings
from marketsearch.infrastructure.database import Database, get_database

router = APIRouter()

SERVICE_NAME = "marketplace-search"


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    service: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness check response schema."""

    status: str
    database: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health.

    Returns:
        Health status with service name and version.
    """
    return HealthResponse(
        status="healthy",
        service=SERVICE_NAME,
        version=settings.api_version,
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={503: {"model": ReadinessResponse}},
)
async def readiness_check(
    database: Annotated[Database, Depends(get_database)],
):
    """Check if service is ready to accept requests.

    Connects to the store on first call.

    Returns:
        Readiness status, 503 when the store is unreachable.
    """
    if await database.ping():
        return ReadinessResponse(status="ready", database="ok")

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=ReadinessResponse(status="not_ready", database="unavailable").model_dump(),
    )

"""
Health Check Endpoints

Provides health, readiness, and liveness probes for monitoring,
load balancers, and Kubernetes.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from agenda.config import settings
from agenda.infra.database import check_db_health
from agenda.infra.redis import check_redis_health

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

VERSION = "1.0.0"

# Track application start time for uptime calculation
_start_time: Optional[datetime] = None


def set_start_time() -> None:
    """Set application start time. Called once on startup."""
    global _start_time
    _start_time = datetime.now(timezone.utc)


def get_uptime_seconds() -> Optional[float]:
    """Get application uptime in seconds."""
    if _start_time is None:
        return None
    return (datetime.now(timezone.utc) - _start_time).total_seconds()


class HealthResponse(BaseModel):
    """Basic health check response."""
    status: str
    timestamp: datetime
    version: str
    environment: str


class ReadyResponse(BaseModel):
    """Readiness check response with dependency status."""
    status: str
    timestamp: datetime
    checks: dict[str, str]


class LiveResponse(BaseModel):
    """Liveness check response."""
    status: str
    timestamp: datetime
    uptime_seconds: Optional[float] = None


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
)
async def health() -> HealthResponse:
    """Always 200 while the process runs. Use /health/ready for dependencies."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=VERSION,
        environment=settings.app_env,
    )


@router.get(
    "/ready",
    response_model=ReadyResponse,
    summary="Readiness probe",
    responses={
        200: {"description": "All dependencies are ready"},
        503: {"description": "The database is unavailable"},
    },
)
async def ready() -> ReadyResponse:
    """
    Readiness probe.

    The database is required. Redis only backs rate limiting, which fails
    open, so a Redis outage is reported as "degraded" without failing the
    probe.
    """
    checks = {}

    db_ok = await check_db_health()
    checks["database"] = "ok" if db_ok else "failed"
    if not db_ok:
        logger.warning("Readiness check: Database unhealthy")

    redis_ok = await check_redis_health()
    checks["redis"] = "ok" if redis_ok else "degraded"
    if not redis_ok:
        logger.warning("Readiness check: Redis unavailable, rate limiting disabled")

    response = ReadyResponse(
        status="ready" if db_ok else "not_ready",
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )

    if not db_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(mode="json"),
        )

    return response


@router.get(
    "/live",
    response_model=LiveResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
)
async def live() -> LiveResponse:
    """Always 200 if the process is running."""
    return LiveResponse(
        status="alive",
        timestamp=datetime.now(timezone.utc),
        uptime_seconds=get_uptime_seconds(),
    )

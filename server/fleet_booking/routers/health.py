"""Liveness, readiness and service info endpoints."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..core.clock import Clock
from ..core.config import settings
from ..core.database import check_db
from ..core.dependencies import ClockDependency
from ..core.observability import SERVICE_NAME, SERVICE_VERSION
from ..schemas.health import HealthResponse, HealthStatus, ReadinessResponse, ServiceInfo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/health", tags=["health"])

# Orchestrator probes live outside the versioned RPC namespace
probe_router = APIRouter(tags=["Health"])


def _health(clock: Clock) -> HealthResponse:
    return HealthResponse(
        status=HealthStatus.HEALTHY,
        service=SERVICE_NAME,
        timestamp=clock(),
        version=SERVICE_VERSION,
    )


@router.post("/ping", response_model=HealthResponse)
async def health_ping(clock: Clock = ClockDependency) -> JSONResponse:
    """
    Health check endpoint.

    Returns current service status and server time (UTC).
    """
    response_data = _health(clock)

    logger.debug(
        "Health check requested",
        extra={"status": response_data.status, "timestamp": response_data.timestamp.isoformat()}
    )

    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@probe_router.get("/health", response_model=HealthResponse, summary="Liveness Check")
async def liveness(clock: Clock = ClockDependency) -> JSONResponse:
    """Liveness probe; does not touch the database."""
    return JSONResponse(status_code=200, content=_health(clock).model_dump(mode="json"))


@probe_router.get("/ready", response_model=ReadinessResponse, summary="Readiness Check")
async def readiness() -> JSONResponse:
    """Readiness probe. Answers 503 while the database is unreachable."""
    database_ok = await check_db()
    response_data = ReadinessResponse(
        status=HealthStatus.READY if database_ok else HealthStatus.NOT_READY,
        service=SERVICE_NAME,
        checks={"database": "ok" if database_ok else "unavailable"},
    )
    if not database_ok:
        logger.warning("Readiness check failed", extra={"checks": response_data.checks})
    return JSONResponse(
        status_code=200 if database_ok else 503,
        content=response_data.model_dump(mode="json"),
    )


@probe_router.get("/info", response_model=ServiceInfo, summary="Service Information")
async def service_info() -> ServiceInfo:
    return ServiceInfo(
        service=SERVICE_NAME,
        version=SERVICE_VERSION,
        environment=settings.environment,
        features={
            "authentication": True,
            "atomic_booking": True,
            "booking_history": True,
            "driver_assignment": True,
            "tracing": settings.otlp_endpoint is not None,
        },
        endpoints={
            "health": "/health",
            "readiness": "/ready",
            "metrics": "/metrics",
            "docs": "/docs" if settings.debug else None,
        },
    )

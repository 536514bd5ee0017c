"""Health-related Pydantic schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    """Health status enumeration."""
    HEALTHY = "healthy"
    READY = "ready"
    NOT_READY = "not_ready"


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: HealthStatus = Field(..., description="Service status")
    service: str = Field(..., description="Service name")
    timestamp: datetime = Field(..., description="Current server time (UTC, ISO 8601)")
    version: str = Field(..., description="API version")


class ReadinessResponse(BaseModel):
    """Readiness probe response; one entry per dependency checked."""

    status: HealthStatus
    service: str
    checks: dict[str, str] = Field(default_factory=dict, description="Dependency name to 'ok' or 'unavailable'")


class ServiceInfo(BaseModel):
    """Static description of the running service."""

    service: str
    version: str
    environment: str
    features: dict[str, bool]
    endpoints: dict[str, str | None]

"""Route-related Pydantic schemas."""

from pydantic import BaseModel, Field

from ..models.route import RouteStatus


class CreateRouteRequest(BaseModel):
    """Request schema for planning a route."""

    name: str = Field(..., min_length=1, max_length=255, description="Route name")
    origin: str = Field(..., min_length=1, max_length=255, description="Start location")
    destination: str = Field(..., min_length=1, max_length=255, description="End location")
    distance_km: float | None = Field(None, ge=0, description="Planned distance in kilometres")


class GetRouteRequest(BaseModel):
    """Request schema for getting a route."""

    route_id: str = Field(..., description="Route to retrieve")


class Route(BaseModel):
    """Route response schema."""

    id: str = Field(..., description="Unique route ID")
    name: str = Field(..., description="Route name")
    origin: str = Field(..., description="Start location")
    destination: str = Field(..., description="End location")
    distance_km: float | None = Field(None, description="Planned distance in kilometres")
    status: RouteStatus = Field(..., description="Route status")

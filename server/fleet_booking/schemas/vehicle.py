"""Vehicle-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from ..models.vehicle import VehicleStatus
from .common import CursorPage, PaginatedResponse


class CreateVehicleRequest(BaseModel):
    """Request schema for registering a vehicle."""

    name: str = Field(..., min_length=1, max_length=255, description="Display name")
    license_plate: str = Field(..., min_length=1, max_length=32, description="Registration plate")
    model: str | None = Field(None, max_length=255, description="Make and model")
    vehicle_type: str | None = Field(None, max_length=64, description="Vehicle category, e.g. van or sedan")
    status: VehicleStatus = Field(VehicleStatus.AVAILABLE, description="Initial directory status")


class GetVehicleRequest(BaseModel):
    """Request schema for getting a vehicle."""

    vehicle_id: str = Field(..., description="Vehicle to retrieve")


class SetVehicleStatusRequest(BaseModel):
    """Request schema for changing a vehicle's directory status."""

    vehicle_id: str = Field(..., description="Vehicle to update")
    status: VehicleStatus = Field(..., description="New status")


class SearchVehiclesRequest(CursorPage):
    """Request schema for searching vehicles."""

    status: VehicleStatus | None = Field(None, description="Filter by status")
    vehicle_type: str | None = Field(None, description="Filter by vehicle category")


class Vehicle(BaseModel):
    """Vehicle response schema."""

    id: str = Field(..., description="Unique vehicle ID")
    name: str = Field(..., description="Display name")
    license_plate: str = Field(..., description="Registration plate")
    model: str | None = Field(None, description="Make and model")
    vehicle_type: str | None = Field(None, description="Vehicle category")
    status: VehicleStatus = Field(..., description="Directory status")
    created_at: datetime = Field(..., description="Registration time (UTC)")


class SearchVehiclesResponse(PaginatedResponse):
    """Response schema for vehicle search."""

    items: list[Vehicle] = Field(..., description="Found vehicles")

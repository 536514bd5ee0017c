"""Driver-related Pydantic schemas."""

from pydantic import BaseModel, Field

from ..models.driver import DriverStatus


class CreateDriverRequest(BaseModel):
    """Request schema for registering a driver."""

    name: str = Field(..., min_length=1, max_length=255, description="Driver name")
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$", description="Contact email")
    license_number: str = Field(..., min_length=1, max_length=64, description="Driving licence number")
    phone: str | None = Field(None, max_length=32, description="Contact phone")
    user_id: str | None = Field(None, max_length=128, description="Login account of the driver")


class GetDriverRequest(BaseModel):
    """Request schema for getting a driver."""

    driver_id: str = Field(..., description="Driver to retrieve")


class Driver(BaseModel):
    """Driver response schema."""

    id: str = Field(..., description="Unique driver ID")
    user_id: str | None = Field(None, description="Login account of the driver")
    name: str = Field(..., description="Driver name")
    email: str = Field(..., description="Contact email")
    phone: str | None = Field(None, description="Contact phone")
    license_number: str = Field(..., description="Driving licence number")
    status: DriverStatus = Field(..., description="Employment status")

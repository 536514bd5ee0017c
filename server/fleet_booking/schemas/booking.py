"""Booking-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from ..models.booking import BookingStatus
from .common import CursorPage, PaginatedResponse, UtcDatetime


def _parse_status(value):
    if value is None:
        return value
    return BookingStatus.parse(value)


class CheckAvailabilityRequest(BaseModel):
    """Request schema for checking vehicle availability."""

    vehicle_id: str = Field(..., description="Vehicle to check")
    start_date: UtcDatetime = Field(..., description="Window start, inclusive (ISO 8601)")
    end_date: UtcDatetime = Field(..., description="Window end, exclusive (ISO 8601)")


class CreateBookingRequest(BaseModel):
    """Request schema for creating a booking."""

    vehicle_id: str = Field(..., description="Vehicle to reserve")
    user_id: str | None = Field(
        None, min_length=1, max_length=128, description="Customer the booking is for; defaults to the caller"
    )
    start_date: UtcDatetime = Field(..., description="Window start, inclusive (ISO 8601)")
    end_date: UtcDatetime = Field(..., description="Window end, exclusive (ISO 8601)")
    purpose: str | None = Field(None, max_length=255, description="Trip purpose")
    pickup_location: str | None = Field(None, max_length=255, description="Pickup location")
    dropoff_location: str | None = Field(None, max_length=255, description="Drop-off location")
    contact_number: str | None = Field(None, max_length=32, description="Contact phone number")
    notes: str | None = Field(None, max_length=2000, description="Free-form notes")


class GetBookingRequest(BaseModel):
    """Request schema for reading a booking or its history."""

    booking_id: str = Field(..., description="Booking to retrieve")


class BookingActionRequest(BaseModel):
    """Request schema for the confirm, start, complete and cancel shortcuts."""

    booking_id: str = Field(..., description="Booking to act on")
    note: str | None = Field(None, max_length=2000, description="Reason recorded in the history")


class TransitionBookingRequest(BookingActionRequest):
    """Request schema for moving a booking to another status."""

    target_status: BookingStatus = Field(
        ..., description="Target status; 'assigned' and 'in_progress' are accepted as aliases"
    )

    @field_validator("target_status", mode="before")
    @classmethod
    def parse_target_status(cls, v):
        """Accept status aliases."""
        return _parse_status(v)


class AssignDriverRequest(BaseModel):
    """Request schema for assigning a driver (and optionally a route)."""

    booking_id: str = Field(..., description="Booking to staff")
    driver_id: str = Field(..., description="Driver to assign")
    route_id: str | None = Field(None, description="Route to link")
    note: str | None = Field(None, max_length=2000, description="Reason recorded in the history")


class UpdateBookingRequest(BaseModel):
    """Request schema for editing descriptive booking fields."""

    booking_id: str = Field(..., description="Booking to edit")
    purpose: str | None = Field(None, max_length=255)
    pickup_location: str | None = Field(None, max_length=255)
    dropoff_location: str | None = Field(None, max_length=255)
    contact_number: str | None = Field(None, max_length=32)
    notes: str | None = Field(None, max_length=2000)


class SearchBookingsRequest(CursorPage):
    """Request schema for searching bookings."""

    user_id: str | None = Field(None, description="Filter by customer")
    vehicle_id: str | None = Field(None, description="Filter by vehicle")
    driver_id: str | None = Field(None, description="Filter by assigned driver")
    status: BookingStatus | None = Field(None, description="Filter by status (aliases accepted)")
    live_only: bool = Field(False, description="Only pending, confirmed and active bookings")
    upcoming_only: bool = Field(False, description="Only pending or confirmed bookings that start in the future")

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v):
        """Accept status aliases."""
        return _parse_status(v)


class BookingWindow(BaseModel):
    """A live booking occupying part of a vehicle's timeline."""

    booking_id: str = Field(..., description="Conflicting booking ID")
    start_date: datetime = Field(..., description="Window start (UTC)")
    end_date: datetime = Field(..., description="Window end (UTC)")
    status: BookingStatus = Field(..., description="Booking status")


class AvailabilityResponse(BaseModel):
    """Result of an availability check."""

    vehicle_id: str = Field(..., description="Checked vehicle")
    start_date: datetime = Field(..., description="Requested window start (UTC)")
    end_date: datetime = Field(..., description="Requested window end (UTC)")
    available: bool = Field(..., description="Whether the vehicle can be booked")
    reason: str = Field(..., description="Human-readable explanation")
    conflicts: list[BookingWindow] = Field(default_factory=list, description="Overlapping live bookings")


class Booking(BaseModel):
    """Booking response schema."""

    id: str = Field(..., description="Unique booking ID")
    user_id: str = Field(..., description="Customer")
    vehicle_id: str = Field(..., description="Reserved vehicle")
    start_date: datetime = Field(..., description="Window start (UTC)")
    end_date: datetime = Field(..., description="Window end (UTC)")
    status: BookingStatus = Field(..., description="Booking status")
    purpose: str | None = None
    pickup_location: str | None = None
    dropoff_location: str | None = None
    contact_number: str | None = None
    notes: str | None = None
    assigned_driver_id: str | None = Field(None, description="Assigned driver")
    assigned_route_id: str | None = Field(None, description="Linked route")
    created_at: datetime = Field(..., description="Creation time (UTC)")
    updated_at: datetime = Field(..., description="Last modification time (UTC)")


class SearchBookingsResponse(PaginatedResponse):
    """Response schema for booking search."""

    items: list[Booking] = Field(..., description="Found bookings")


class BookingEvent(BaseModel):
    """One entry of a booking's history."""

    id: str
    sequence: int = Field(..., description="Position in the history, starting at 1")
    from_status: BookingStatus | None = Field(None, description="Status before; null on creation")
    to_status: BookingStatus
    actor_id: str
    actor_role: str
    note: str | None = None
    created_at: datetime


class BookingHistoryResponse(BaseModel):
    """Audit trail of a booking, oldest first."""

    booking_id: str
    events: list[BookingEvent]

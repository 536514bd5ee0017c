"""Models module exporting all database models."""

from .booking import (
    ALLOWED_TRANSITIONS,
    LIVE_STATUSES,
    Booking,
    BookingStatus,
)
from .booking_event import BookingEvent
from .driver import Driver, DriverStatus
from .route import Route, RouteStatus
from .vehicle import Vehicle, VehicleStatus

__all__ = [
    # Directory entities
    "Vehicle",
    "VehicleStatus",
    "Driver",
    "DriverStatus",
    "Route",
    "RouteStatus",

    # Booking entities
    "Booking",
    "BookingStatus",
    "BookingEvent",
    "LIVE_STATUSES",
    "ALLOWED_TRANSITIONS",
]

"""Service layer package."""

from .booking_service import BookingService
from .driver_service import DriverService
from .route_service import RouteService
from .vehicle_service import VehicleService

__all__ = [
    "BookingService",
    "DriverService",
    "RouteService",
    "VehicleService",
]

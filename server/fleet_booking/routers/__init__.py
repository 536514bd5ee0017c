"""FastAPI routers package."""

from .booking import router as booking_router
from .driver import router as driver_router
from .health import router as health_router
from .metrics import router as metrics_router
from .route import router as route_router
from .vehicle import router as vehicle_router

__all__ = [
    "booking_router",
    "driver_router",
    "health_router",
    "metrics_router",
    "route_router",
    "vehicle_router",
]

"""Route registry used by driver assignment."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock, utc_now
from ..core.exceptions import NotFoundError
from ..models.route import Route
from ..schemas.route import CreateRouteRequest

logger = logging.getLogger(__name__)


class RouteService:
    """Service for route-related operations."""

    def __init__(self, db: AsyncSession, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    async def create_route(self, request: CreateRouteRequest) -> Route:
        now = self.clock()
        route = Route(
            name=request.name,
            origin=request.origin,
            destination=request.destination,
            distance_km=request.distance_km,
            created_at=now,
            updated_at=now,
        )
        self.db.add(route)
        await self.db.commit()
        await self.db.refresh(route)

        logger.info(
            "Route created",
            extra={"route_id": str(route.id), "origin": route.origin, "destination": route.destination}
        )
        return route

    async def get_route_by_id(self, route_id: str | UUID) -> Optional[Route]:
        try:
            route_uuid = route_id if isinstance(route_id, UUID) else UUID(route_id)
        except (ValueError, TypeError):
            return None
        result = await self.db.execute(select(Route).where(Route.id == route_uuid))
        return result.scalar_one_or_none()

    async def get_route_by_id_or_raise(self, route_id: str | UUID) -> Route:
        route = await self.get_route_by_id(route_id)
        if not route:
            logger.warning("Route not found", extra={"route_id": str(route_id)})
            raise NotFoundError(resource_type="route", resource_id=str(route_id), code="ROUTE_NOT_FOUND")
        return route

    async def route_exists(self, route_id: str | UUID) -> bool:
        return await self.get_route_by_id(route_id) is not None

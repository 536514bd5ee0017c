"""Route router for planned routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock
from ..core.database import get_db
from ..core.dependencies import ClockDependency, ManagerActor, RequiredActor
from ..core.exceptions import ProblemDetailsException
from ..schemas.actor import Actor
from ..schemas.route import CreateRouteRequest, GetRouteRequest, Route
from ..services.route_service import RouteService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/route", tags=["route"])

DB_DEPENDENCY = Depends(get_db)


def _convert_route_to_schema(route_model) -> Route:
    """Convert route model to schema."""
    return Route(
        id=str(route_model.id),
        name=route_model.name,
        origin=route_model.origin,
        destination=route_model.destination,
        distance_km=route_model.distance_km,
        status=route_model.status,
    )


@router.post("/create", response_model=Route, status_code=201)
async def create_route(
    request: CreateRouteRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = ManagerActor,
    clock: Clock = ClockDependency,
) -> JSONResponse:
    """Plan a route. Fleet managers only."""
    route_service = RouteService(db, clock)

    try:
        route = await route_service.create_route(request)
        return JSONResponse(
            status_code=201,
            content=_convert_route_to_schema(route).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in route creation",
            extra={"origin": request.origin, "destination": request.destination, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/get", response_model=Route)
async def get_route(
    request: GetRouteRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = RequiredActor,
) -> JSONResponse:
    """Get route details."""
    route_service = RouteService(db)

    try:
        route = await route_service.get_route_by_id_or_raise(request.route_id)
        return JSONResponse(
            status_code=200,
            content=_convert_route_to_schema(route).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in route retrieval",
            extra={"route_id": request.route_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e

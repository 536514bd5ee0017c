"""Vehicle router for the vehicle directory."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock
from ..core.database import get_db
from ..core.dependencies import ClockDependency, ManagerActor, RequiredActor
from ..core.exceptions import ProblemDetailsException
from ..schemas.actor import Actor
from ..schemas.vehicle import (
    CreateVehicleRequest,
    GetVehicleRequest,
    SearchVehiclesRequest,
    SearchVehiclesResponse,
    SetVehicleStatusRequest,
    Vehicle,
)
from ..services.vehicle_service import VehicleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/vehicle", tags=["vehicle"])

DB_DEPENDENCY = Depends(get_db)


def _convert_vehicle_to_schema(vehicle_model) -> Vehicle:
    """Convert vehicle model to schema."""
    return Vehicle(
        id=str(vehicle_model.id),
        name=vehicle_model.name,
        license_plate=vehicle_model.license_plate,
        model=vehicle_model.model,
        vehicle_type=vehicle_model.vehicle_type,
        status=vehicle_model.status,
        created_at=vehicle_model.created_at,
    )


@router.post("/create", response_model=Vehicle, status_code=201)
async def create_vehicle(
    request: CreateVehicleRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = ManagerActor,
    clock: Clock = ClockDependency,
) -> JSONResponse:
    """Register a vehicle. Fleet managers only."""
    vehicle_service = VehicleService(db, clock)

    try:
        vehicle = await vehicle_service.create_vehicle(request)
        return JSONResponse(
            status_code=201,
            content=_convert_vehicle_to_schema(vehicle).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in vehicle registration",
            extra={"license_plate": request.license_plate, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/get", response_model=Vehicle)
async def get_vehicle(
    request: GetVehicleRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = RequiredActor,
) -> JSONResponse:
    """Get vehicle details."""
    vehicle_service = VehicleService(db)

    try:
        vehicle = await vehicle_service.get_vehicle_by_id_or_raise(request.vehicle_id)
        return JSONResponse(
            status_code=200,
            content=_convert_vehicle_to_schema(vehicle).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in vehicle retrieval",
            extra={"vehicle_id": request.vehicle_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/search", response_model=SearchVehiclesResponse)
async def search_vehicles(
    request: SearchVehiclesRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = RequiredActor,
) -> JSONResponse:
    """Search vehicles with cursor-based pagination."""
    vehicle_service = VehicleService(db)

    try:
        vehicles, next_cursor = await vehicle_service.search_vehicles(request)
        response_data = SearchVehiclesResponse(
            items=[_convert_vehicle_to_schema(v) for v in vehicles],
            next_cursor=next_cursor,
        )

        logger.info(
            "Vehicle search completed",
            extra={"results_count": len(vehicles), "has_next_page": next_cursor is not None}
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in vehicle search",
            extra={"error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/set-status", response_model=Vehicle)
async def set_vehicle_status(
    request: SetVehicleStatusRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = ManagerActor,
    clock: Clock = ClockDependency,
) -> JSONResponse:
    """
    Change a vehicle's directory status. Fleet managers only.

    Existing bookings are left untouched; an out-of-service vehicle simply
    stops accepting new ones.
    """
    vehicle_service = VehicleService(db, clock)

    try:
        vehicle = await vehicle_service.set_vehicle_status(request.vehicle_id, request.status)
        return JSONResponse(
            status_code=200,
            content=_convert_vehicle_to_schema(vehicle).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in vehicle status change",
            extra={"vehicle_id": request.vehicle_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e

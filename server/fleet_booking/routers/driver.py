"""Driver router for the driver directory."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock
from ..core.database import get_db
from ..core.dependencies import ClockDependency, ManagerActor, RequiredActor
from ..core.exceptions import ProblemDetailsException
from ..schemas.actor import Actor
from ..schemas.driver import CreateDriverRequest, Driver, GetDriverRequest
from ..services.driver_service import DriverService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/driver", tags=["driver"])

DB_DEPENDENCY = Depends(get_db)


def _convert_driver_to_schema(driver_model) -> Driver:
    """Convert driver model to schema."""
    return Driver(
        id=str(driver_model.id),
        user_id=driver_model.user_id,
        name=driver_model.name,
        email=driver_model.email,
        phone=driver_model.phone,
        license_number=driver_model.license_number,
        status=driver_model.status,
    )


@router.post("/create", response_model=Driver, status_code=201)
async def create_driver(
    request: CreateDriverRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = ManagerActor,
    clock: Clock = ClockDependency,
) -> JSONResponse:
    """Register a driver. Fleet managers only."""
    driver_service = DriverService(db, clock)

    try:
        driver = await driver_service.create_driver(request)
        return JSONResponse(
            status_code=201,
            content=_convert_driver_to_schema(driver).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in driver registration",
            extra={"email": request.email, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/get", response_model=Driver)
async def get_driver(
    request: GetDriverRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = RequiredActor,
) -> JSONResponse:
    """Get driver details."""
    driver_service = DriverService(db)

    try:
        driver = await driver_service.get_driver_by_id_or_raise(request.driver_id)
        return JSONResponse(
            status_code=200,
            content=_convert_driver_to_schema(driver).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in driver retrieval",
            extra={"driver_id": request.driver_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e

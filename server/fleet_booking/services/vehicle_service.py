"""Vehicle directory service."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import and_, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock, utc_now
from ..core.exceptions import ConflictError, VehicleNotFoundError
from ..models.vehicle import Vehicle, VehicleStatus
from ..schemas.vehicle import CreateVehicleRequest, SearchVehiclesRequest

logger = logging.getLogger(__name__)


def parse_vehicle_id(vehicle_id: str | UUID) -> UUID:
    """Parse a vehicle ID; malformed IDs name no vehicle."""
    if isinstance(vehicle_id, UUID):
        return vehicle_id
    try:
        return UUID(vehicle_id)
    except (ValueError, TypeError, AttributeError):
        raise VehicleNotFoundError(str(vehicle_id)) from None


class VehicleService:
    """Service for vehicle directory operations."""

    def __init__(self, db: AsyncSession, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    async def create_vehicle(self, request: CreateVehicleRequest) -> Vehicle:
        """
        Register a new vehicle.

        Raises:
            ConflictError: If a vehicle with the same license plate exists
        """
        existing = await self.get_vehicle_by_plate(request.license_plate)
        if existing:
            logger.warning(
                "Vehicle registration failed - license plate already exists",
                extra={"license_plate": request.license_plate, "existing_vehicle_id": str(existing.id)}
            )
            raise ConflictError(
                detail=f"Vehicle with license plate '{request.license_plate}' already exists",
                conflicting_resource={"id": str(existing.id), "license_plate": existing.license_plate}
            )

        now = self.clock()
        vehicle = Vehicle(
            name=request.name,
            license_plate=request.license_plate,
            model=request.model,
            vehicle_type=request.vehicle_type,
            status=request.status,
            booking_version=0,
            created_at=now,
            updated_at=now,
        )

        try:
            self.db.add(vehicle)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(
                "Vehicle registration failed due to integrity constraint",
                extra={"license_plate": request.license_plate, "error": str(e)}
            )
            raise ConflictError(detail="Vehicle registration failed due to constraint violation") from e

        await self.db.refresh(vehicle)
        logger.info(
            "Vehicle registered",
            extra={"vehicle_id": str(vehicle.id), "license_plate": vehicle.license_plate}
        )
        return vehicle

    async def get_vehicle_by_id(self, vehicle_id: UUID) -> Optional[Vehicle]:
        stmt = select(Vehicle).where(Vehicle.id == vehicle_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_vehicle_by_plate(self, license_plate: str) -> Optional[Vehicle]:
        stmt = select(Vehicle).where(Vehicle.license_plate == license_plate)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_vehicle_by_id_or_raise(self, vehicle_id: str | UUID) -> Vehicle:
        """
        Get vehicle by ID or raise VehicleNotFoundError.

        Raises:
            VehicleNotFoundError: If the ID is malformed or unknown
        """
        vehicle_uuid = parse_vehicle_id(vehicle_id)
        vehicle = await self.get_vehicle_by_id(vehicle_uuid)
        if not vehicle:
            logger.warning("Vehicle not found", extra={"vehicle_id": str(vehicle_id)})
            raise VehicleNotFoundError(str(vehicle_id))
        return vehicle

    async def vehicle_exists(self, vehicle_id: str | UUID) -> bool:
        try:
            vehicle_uuid = parse_vehicle_id(vehicle_id)
        except VehicleNotFoundError:
            return False
        stmt = select(Vehicle.id).where(Vehicle.id == vehicle_uuid)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def vehicle_status(self, vehicle_id: str | UUID) -> VehicleStatus:
        """Directory status of a vehicle; raises VehicleNotFoundError if unknown."""
        vehicle = await self.get_vehicle_by_id_or_raise(vehicle_id)
        return vehicle.status

    async def search_vehicles(self, request: SearchVehiclesRequest) -> tuple[list[Vehicle], str | None]:
        """
        Search vehicles with cursor pagination ordered by ID.

        Returns:
            Page of vehicles and the cursor of the next page, if any
        """
        stmt = select(Vehicle)

        conditions = []
        if request.status:
            conditions.append(Vehicle.status == request.status)
        if request.vehicle_type:
            conditions.append(Vehicle.vehicle_type == request.vehicle_type)
        if request.cursor:
            try:
                conditions.append(Vehicle.id > UUID(request.cursor))
            except ValueError:
                logger.warning("Invalid cursor provided in vehicle search", extra={"cursor": request.cursor})

        if conditions:
            stmt = stmt.where(and_(*conditions))

        stmt = stmt.order_by(Vehicle.id).limit(request.limit + 1)
        result = await self.db.execute(stmt)
        vehicles = list(result.scalars())

        has_next_page = len(vehicles) > request.limit
        if has_next_page:
            vehicles = vehicles[:-1]
        next_cursor = str(vehicles[-1].id) if has_next_page and vehicles else None
        return vehicles, next_cursor

    async def set_vehicle_status(self, vehicle_id: str, status: VehicleStatus) -> Vehicle:
        """Change a vehicle's directory status."""
        vehicle = await self.get_vehicle_by_id_or_raise(vehicle_id)
        previous = vehicle.status
        vehicle.status = status
        vehicle.updated_at = self.clock()
        self.db.add(vehicle)
        await self.db.commit()
        await self.db.refresh(vehicle)

        logger.info(
            "Vehicle status changed",
            extra={"vehicle_id": str(vehicle.id), "from_status": previous, "to_status": status}
        )
        return vehicle

    async def get_vehicle_for_booking(self, vehicle_id: str | UUID) -> Vehicle:
        """
        Load a vehicle at the start of a booking write.

        On PostgreSQL the vehicle is serialized with a transaction-scoped
        advisory lock. The row is always re-read from the database so the
        ``booking_version`` seen here is the one the compare-and-set checks.

        Raises:
            VehicleNotFoundError: If the vehicle does not exist
        """
        vehicle_uuid = parse_vehicle_id(vehicle_id)

        if self.db.bind and self.db.bind.dialect.name == "postgresql":
            await self.db.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:vehicle_id))"),
                {"vehicle_id": str(vehicle_uuid)}
            )

        stmt = (
            select(Vehicle)
            .where(Vehicle.id == vehicle_uuid)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        vehicle = result.scalar_one_or_none()
        if not vehicle:
            logger.warning("Vehicle not found for booking", extra={"vehicle_id": str(vehicle_id)})
            raise VehicleNotFoundError(str(vehicle_id))
        return vehicle

    async def claim_booking_slot(self, vehicle_id: UUID, expected_version: int) -> bool:
        """
        Compare-and-set the vehicle's booking version inside the current transaction.

        Returns:
            True if this transaction now owns the next version, False if a
            concurrent booking write got there first
        """
        stmt = (
            update(Vehicle)
            .where(Vehicle.id == vehicle_id, Vehicle.booking_version == expected_version)
            .values(booking_version=expected_version + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        claimed = result.rowcount == 1
        if not claimed:
            logger.info(
                "Booking slot claim lost",
                extra={"vehicle_id": str(vehicle_id), "expected_version": expected_version}
            )
        return claimed

"""Driver directory service."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock, utc_now
from ..core.exceptions import ConflictError, NotFoundError
from ..models.driver import Driver
from ..schemas.driver import CreateDriverRequest

logger = logging.getLogger(__name__)


class DriverService:
    """Service for driver-related operations."""

    def __init__(self, db: AsyncSession, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    async def create_driver(self, request: CreateDriverRequest) -> Driver:
        """
        Register a driver.

        Raises:
            ConflictError: If the email, licence number or login account is taken
        """
        conditions = [Driver.email == request.email, Driver.license_number == request.license_number]
        if request.user_id:
            conditions.append(Driver.user_id == request.user_id)
        result = await self.db.execute(select(Driver).where(or_(*conditions)))
        existing = result.scalars().first()
        if existing:
            logger.warning(
                "Driver registration failed - duplicate identity",
                extra={"email": request.email, "existing_driver_id": str(existing.id)}
            )
            raise ConflictError(
                detail="A driver with the same email, licence number or login account already exists",
                conflicting_resource={"id": str(existing.id), "email": existing.email}
            )

        now = self.clock()
        driver = Driver(
            user_id=request.user_id,
            name=request.name,
            email=request.email,
            phone=request.phone,
            license_number=request.license_number,
            created_at=now,
            updated_at=now,
        )

        try:
            self.db.add(driver)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError(detail="Driver registration failed due to constraint violation") from e

        await self.db.refresh(driver)
        logger.info("Driver registered", extra={"driver_id": str(driver.id)})
        return driver

    async def get_driver_by_id(self, driver_id: str | UUID) -> Optional[Driver]:
        try:
            driver_uuid = driver_id if isinstance(driver_id, UUID) else UUID(driver_id)
        except (ValueError, TypeError):
            return None
        result = await self.db.execute(select(Driver).where(Driver.id == driver_uuid))
        return result.scalar_one_or_none()

    async def get_driver_by_user_id(self, user_id: str) -> Optional[Driver]:
        """Driver record linked to a login account, if any."""
        result = await self.db.execute(select(Driver).where(Driver.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_driver_by_id_or_raise(self, driver_id: str | UUID) -> Driver:
        """
        Get driver by ID or raise NotFoundError.

        Raises:
            NotFoundError: If the driver does not exist
        """
        driver = await self.get_driver_by_id(driver_id)
        if not driver:
            logger.warning("Driver not found", extra={"driver_id": str(driver_id)})
            raise NotFoundError(resource_type="driver", resource_id=str(driver_id), code="DRIVER_NOT_FOUND")
        return driver

    async def driver_exists(self, driver_id: str | UUID) -> bool:
        return await self.get_driver_by_id(driver_id) is not None

"""Vehicle model definition."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Integer, String, Uuid, func
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class VehicleStatus(str, Enum):
    """Vehicle directory status."""
    AVAILABLE = "available"
    IN_USE = "in_use"
    MAINTENANCE = "maintenance"
    OUT_OF_SERVICE = "out_of_service"

    @property
    def is_bookable(self) -> bool:
        """Vehicles taken out of service accept no new bookings."""
        return self is not VehicleStatus.OUT_OF_SERVICE


class Vehicle(Base):
    """Vehicle entity as kept by the vehicle directory."""

    __tablename__ = "vehicles"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    license_plate: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)
    model: Mapped[str | None] = mapped_column(String(255), nullable=True)
    vehicle_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[VehicleStatus] = mapped_column(
        SAEnum(
            VehicleStatus,
            name="vehicle_status",
            native_enum=False,
            length=20,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=VehicleStatus.AVAILABLE,
        index=True
    )

    # Bumped by every booking insert for this vehicle; compare-and-set guard
    booking_version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0"
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        server_onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("length(name) > 0", name="ck_vehicle_name_not_empty"),
        CheckConstraint("length(license_plate) > 0", name="ck_vehicle_license_plate_not_empty"),
        CheckConstraint("booking_version >= 0", name="ck_vehicle_booking_version_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<Vehicle(id={self.id}, license_plate='{self.license_plate}', "
            f"status={self.status}, booking_version={self.booking_version})>"
        )

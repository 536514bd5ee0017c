"""Driver model definition."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, String, Uuid, func
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class DriverStatus(str, Enum):
    """Driver employment status."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_LEAVE = "on_leave"


class Driver(Base):
    """Driver entity; ``user_id`` links the driver to a login account."""

    __tablename__ = "drivers"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    user_id: Mapped[str | None] = mapped_column(String(128), nullable=True, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    license_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    status: Mapped[DriverStatus] = mapped_column(
        SAEnum(
            DriverStatus,
            name="driver_status",
            native_enum=False,
            length=20,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=DriverStatus.ACTIVE
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
        CheckConstraint("length(name) > 0", name="ck_driver_name_not_empty"),
        CheckConstraint("length(license_number) > 0", name="ck_driver_license_number_not_empty"),
    )

    def __repr__(self) -> str:
        return f"<Driver(id={self.id}, name='{self.name}', status={self.status})>"

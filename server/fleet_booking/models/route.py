"""Route model definition."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Float, String, Uuid, func
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class RouteStatus(str, Enum):
    """Route status in the route-planning vocabulary.

    ``assigned`` and ``in_progress`` correspond to the booking statuses
    ``confirmed`` and ``active`` (see ``BookingStatus.parse``).
    """
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Route(Base):
    """Planned route that can be linked to a confirmed booking."""

    __tablename__ = "routes"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    origin: Mapped[str] = mapped_column(String(255), nullable=False)
    destination: Mapped[str] = mapped_column(String(255), nullable=False)
    distance_km: Mapped[float | None] = mapped_column(Float, nullable=True)
    status: Mapped[RouteStatus] = mapped_column(
        SAEnum(
            RouteStatus,
            name="route_status",
            native_enum=False,
            length=20,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=RouteStatus.PENDING
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
        CheckConstraint("length(name) > 0", name="ck_route_name_not_empty"),
        CheckConstraint("distance_km IS NULL OR distance_km >= 0", name="ck_route_distance_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Route(id={self.id}, name='{self.name}', {self.origin} -> {self.destination})>"

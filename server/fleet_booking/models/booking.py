"""Booking model and lifecycle definitions."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class BookingStatus(str, Enum):
    """Canonical booking status."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_live(self) -> bool:
        """Live bookings hold their vehicle's interval."""
        return self in LIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]

    def can_transition_to(self, target: "BookingStatus") -> bool:
        return target in ALLOWED_TRANSITIONS[self]

    @classmethod
    def parse(cls, value: "str | BookingStatus") -> "BookingStatus":
        """
        Parse a status string, accepting route vocabulary and legacy spellings.

        Raises:
            ValueError: If the value names no known status
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        try:
            return cls(STATUS_ALIASES.get(normalized, normalized))
        except ValueError:
            raise ValueError(f"Unknown booking status '{value}'") from None


# Route-planning statuses and alternate spellings seen in client data
STATUS_ALIASES = {
    "assigned": "confirmed",
    "in_progress": "active",
    "in-progress": "active",
    "canceled": "cancelled",
}

LIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.ACTIVE})

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.ACTIVE, BookingStatus.CANCELLED}),
    BookingStatus.ACTIVE: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

# Statuses in which a driver and route may still be assigned
ASSIGNABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


def booking_status_type(name: str) -> SAEnum:
    """Column type storing ``BookingStatus`` by value."""
    return SAEnum(
        BookingStatus,
        name=name,
        native_enum=False,
        length=20,
        values_callable=lambda enum: [member.value for member in enum],
    )


class Booking(Base):
    """Reservation of one vehicle by one customer over ``[start_date, end_date)``."""

    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    vehicle_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("vehicles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        booking_status_type("booking_status"),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True
    )

    purpose: Mapped[str | None] = mapped_column(String(255), nullable=True)
    pickup_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    dropoff_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    assigned_driver_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("drivers.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    assigned_route_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("routes.id", ondelete="SET NULL"),
        nullable=True
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

    # The PostgreSQL exclusion constraint on live windows lives in the migration
    __table_args__ = (
        CheckConstraint("start_date < end_date", name="ck_booking_window_ordered"),
        CheckConstraint("length(user_id) > 0", name="ck_booking_user_id_not_empty"),
        Index("ix_bookings_vehicle_window", "vehicle_id", "start_date", "end_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, vehicle_id={self.vehicle_id}, "
            f"window=[{self.start_date}, {self.end_date}), status={self.status})>"
        )

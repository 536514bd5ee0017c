"""Booking event model: audit trail of booking lifecycle changes."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base
from .booking import BookingStatus, booking_status_type


class BookingEvent(Base):
    """One creation, transition or assignment applied to a booking."""

    __tablename__ = "booking_events"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    # Position in the booking's history, starting at 1
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    # from_status is null for the creation event
    from_status: Mapped[BookingStatus | None] = mapped_column(
        booking_status_type("booking_event_from_status"),
        nullable=True
    )
    to_status: Mapped[BookingStatus] = mapped_column(
        booking_status_type("booking_event_to_status"),
        nullable=False
    )

    actor_id: Mapped[str] = mapped_column(String(128), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(32), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        index=True
    )

    __table_args__ = (
        CheckConstraint("length(actor_id) > 0", name="ck_booking_event_actor_id_not_empty"),
        UniqueConstraint("booking_id", "sequence", name="uq_booking_event_sequence"),
    )

    def __repr__(self) -> str:
        return (
            f"<BookingEvent(booking_id={self.booking_id}, "
            f"{self.from_status} -> {self.to_status}, actor='{self.actor_id}')>"
        )

"""Booking lifecycle service: availability, atomic creation and status transitions."""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock, utc_now
from ..core.config import settings
from ..core.exceptions import (
    AuthorizationError,
    BookingNotFoundError,
    ConcurrencyConflictError,
    InvalidBookingStateError,
    InvalidIntervalError,
    InvalidTransitionError,
    PastStartDateError,
    ValidationError,
    VehicleUnavailableError,
)
from ..core.observability import metrics_collector
from ..models.booking import ASSIGNABLE_STATUSES, LIVE_STATUSES, Booking, BookingStatus
from ..models.booking_event import BookingEvent
from ..models.vehicle import Vehicle
from ..schemas.actor import Actor, ActorRole
from ..schemas.booking import (
    AssignDriverRequest,
    AvailabilityResponse,
    BookingWindow,
    CheckAvailabilityRequest,
    CreateBookingRequest,
    SearchBookingsRequest,
    UpdateBookingRequest,
)
from .driver_service import DriverService
from .route_service import RouteService
from .vehicle_service import VehicleService, parse_vehicle_id

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("purpose", "pickup_location", "dropoff_location", "contact_number", "notes")

# Raised by ex_bookings_vehicle_live_window when another live booking holds the window
EXCLUSION_VIOLATION = "23P01"


def _parse_filter_id(value: str, field: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise ValidationError(
            detail=f"Malformed {field}",
            violations=[{"path": field, "message": "must be a UUID"}],
        ) from None


def _is_exclusion_violation(error: IntegrityError) -> bool:
    orig = error.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code == EXCLUSION_VIOLATION or "ex_bookings_vehicle_live_window" in str(orig)


def _booking_window(booking: Booking) -> BookingWindow:
    return BookingWindow(
        booking_id=str(booking.id),
        start_date=booking.start_date,
        end_date=booking.end_date,
        status=booking.status,
    )


class BookingService:
    """
    Booking lifecycle manager.

    Every write runs as one atomic unit against the store: creation pairs
    the overlap check with a compare-and-set on the vehicle's booking
    version, and status changes compare-and-set on the booking's observed
    status. The caller's identity and the clock are passed in explicitly.
    """

    def __init__(self, db: AsyncSession, clock: Clock = utc_now, write_attempts: Optional[int] = None):
        self.db = db
        self.clock = clock
        self.write_attempts = write_attempts or settings.booking_write_attempts
        self.vehicle_service = VehicleService(db, clock)
        self.driver_service = DriverService(db, clock)
        self.route_service = RouteService(db, clock)

    # Availability

    def _validate_window(self, start_date: datetime, end_date: datetime) -> None:
        """Reject malformed or past windows before touching the store."""
        if start_date >= end_date:
            raise InvalidIntervalError(start_date, end_date)
        now = self.clock()
        if start_date < now:
            raise PastStartDateError(start_date, now)

    async def find_live_bookings_by_vehicle(
        self,
        vehicle_id: UUID,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> list[Booking]:
        """
        Live bookings of a vehicle, optionally only those overlapping ``[start_date, end_date)``.
        """
        conditions = [
            Booking.vehicle_id == vehicle_id,
            Booking.status.in_(list(LIVE_STATUSES)),
        ]
        if start_date is not None and end_date is not None:
            conditions.extend([Booking.start_date < end_date, Booking.end_date > start_date])

        stmt = (
            select(Booking)
            .where(and_(*conditions))
            .order_by(Booking.start_date)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    def _conflict_reason(self, vehicle_id: str, conflicts: list[Booking]) -> str:
        first = conflicts[0]
        reason = (
            f"Vehicle {vehicle_id} is already booked from {first.start_date.isoformat()} "
            f"to {first.end_date.isoformat()} (booking {first.id}, {first.status.value})"
        )
        if len(conflicts) > 1:
            reason += f" and {len(conflicts) - 1} more overlapping booking(s)"
        return reason

    def _out_of_service_reason(self, vehicle: Vehicle) -> str:
        return f"Vehicle {vehicle.id} is {vehicle.status.value} and cannot be booked"

    async def check_availability(self, request: CheckAvailabilityRequest) -> AvailabilityResponse:
        """
        Check whether a vehicle can be booked for ``[start_date, end_date)``.

        Read-only.

        Raises:
            InvalidIntervalError: If start_date is not before end_date
            PastStartDateError: If start_date is in the past
            VehicleNotFoundError: If the vehicle does not exist
        """
        self._validate_window(request.start_date, request.end_date)
        vehicle = await self.vehicle_service.get_vehicle_by_id_or_raise(request.vehicle_id)

        conflicts: list[Booking] = []
        if not vehicle.status.is_bookable:
            available = False
            reason = self._out_of_service_reason(vehicle)
        else:
            conflicts = await self.find_live_bookings_by_vehicle(vehicle.id, request.start_date, request.end_date)
            available = not conflicts
            if available:
                reason = "Vehicle is available for the selected window"
            else:
                reason = self._conflict_reason(str(vehicle.id), conflicts)

        metrics_collector.record_availability_check(available)
        logger.info(
            "Availability checked",
            extra={
                "vehicle_id": str(vehicle.id),
                "start_date": request.start_date.isoformat(),
                "end_date": request.end_date.isoformat(),
                "available": available,
                "conflict_count": len(conflicts),
            }
        )

        return AvailabilityResponse(
            vehicle_id=str(vehicle.id),
            start_date=request.start_date,
            end_date=request.end_date,
            available=available,
            reason=reason,
            conflicts=[_booking_window(b) for b in conflicts],
        )

    # Creation

    def _resolve_customer(self, requested_user_id: Optional[str], actor: Actor) -> str:
        """Customers book for themselves; managers may book on a customer's behalf."""
        if requested_user_id is None or requested_user_id == actor.user_id:
            return actor.user_id
        if actor.is_manager:
            return requested_user_id
        logger.warning(
            "Booking on behalf of another user refused",
            extra={"actor_id": actor.user_id, "requested_user_id": requested_user_id}
        )
        raise AuthorizationError(detail="Customers can only create bookings for themselves")

    async def create_booking(self, request: CreateBookingRequest, actor: Actor) -> Booking:
        """
        Create a pending booking if the vehicle is free for the window.

        The overlap check and the insert form one atomic unit. A lost race is
        retried once; if it recurs the vehicle is reported unavailable.

        Raises:
            InvalidIntervalError: If start_date is not before end_date
            PastStartDateError: If start_date is in the past
            VehicleNotFoundError: If the vehicle does not exist
            VehicleUnavailableError: If a live booking overlaps the window
            AuthorizationError: If a customer books for someone else
        """
        self._validate_window(request.start_date, request.end_date)
        user_id = self._resolve_customer(request.user_id, actor)
        vehicle_id = parse_vehicle_id(request.vehicle_id)

        last_conflict: Optional[ConcurrencyConflictError] = None
        for attempt in range(1, self.write_attempts + 1):
            try:
                booking = await self._insert_booking(vehicle_id, request, user_id, actor)
            except ConcurrencyConflictError as e:
                last_conflict = e
                metrics_collector.record_concurrency_conflict("create_booking")
                logger.warning(
                    "Booking insert lost a race",
                    extra={"vehicle_id": str(vehicle_id), "attempt": attempt}
                )
                continue
            except VehicleUnavailableError:
                metrics_collector.record_booking_rejected()
                raise

            metrics_collector.record_booking_created()
            logger.info(
                "Booking created",
                extra={
                    "booking_id": str(booking.id),
                    "vehicle_id": str(vehicle_id),
                    "user_id": user_id,
                    "start_date": booking.start_date.isoformat(),
                    "end_date": booking.end_date.isoformat(),
                    "attempt": attempt,
                }
            )
            return booking

        metrics_collector.record_booking_rejected()
        raise VehicleUnavailableError(
            str(vehicle_id),
            reason=f"Vehicle {vehicle_id} was booked concurrently for an overlapping window",
        ) from last_conflict

    async def _insert_booking(
        self,
        vehicle_id: UUID,
        request: CreateBookingRequest,
        user_id: str,
        actor: Actor,
    ) -> Booking:
        """One check-and-insert attempt in its own transaction."""
        try:
            vehicle = await self.vehicle_service.get_vehicle_for_booking(vehicle_id)
            if not vehicle.status.is_bookable:
                raise VehicleUnavailableError(str(vehicle_id), reason=self._out_of_service_reason(vehicle))

            conflicts = await self.find_live_bookings_by_vehicle(vehicle_id, request.start_date, request.end_date)
            if conflicts:
                raise VehicleUnavailableError(
                    str(vehicle_id),
                    reason=self._conflict_reason(str(vehicle_id), conflicts),
                    conflicting_booking=_booking_window(conflicts[0]).model_dump(mode="json"),
                )

            if not await self.vehicle_service.claim_booking_slot(vehicle_id, vehicle.booking_version):
                raise ConcurrencyConflictError("vehicle", str(vehicle_id))

            now = self.clock()
            booking = Booking(
                id=uuid4(),
                user_id=user_id,
                vehicle_id=vehicle_id,
                start_date=request.start_date,
                end_date=request.end_date,
                status=BookingStatus.PENDING,
                purpose=request.purpose,
                pickup_location=request.pickup_location,
                dropoff_location=request.dropoff_location,
                contact_number=request.contact_number,
                notes=request.notes,
                created_at=now,
                updated_at=now,
            )
            self.db.add(booking)
            await self.db.flush()
            await self._record_event(booking.id, None, BookingStatus.PENDING, actor, "Booking requested", now)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if _is_exclusion_violation(e):
                raise ConcurrencyConflictError("vehicle", str(vehicle_id)) from e
            raise
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(booking)
        return booking

    # Transitions

    async def _is_assigned_driver(self, booking: Booking, actor: Actor) -> bool:
        if booking.assigned_driver_id is None:
            return False
        driver = await self.driver_service.get_driver_by_id(booking.assigned_driver_id)
        return driver is not None and driver.user_id == actor.user_id

    async def _authorize_transition(self, booking: Booking, target: BookingStatus, actor: Actor) -> None:
        if actor.is_manager:
            return
        if target is BookingStatus.CANCELLED and booking.user_id == actor.user_id:
            return
        if (
            target in (BookingStatus.ACTIVE, BookingStatus.COMPLETED)
            and actor.has_role(ActorRole.DRIVER)
            and await self._is_assigned_driver(booking, actor)
        ):
            return

        logger.warning(
            "Booking transition refused",
            extra={
                "booking_id": str(booking.id),
                "target_status": target.value,
                "actor_id": actor.user_id,
                "actor_role": actor.primary_role,
            }
        )
        raise AuthorizationError(
            detail=f"{actor.primary_role} '{actor.user_id}' may not move booking {booking.id} to '{target.value}'"
        )

    async def _compare_and_set(self, booking_id: UUID, expected: BookingStatus, **values) -> bool:
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def _current_status(self, booking_id: UUID) -> Optional[BookingStatus]:
        result = await self.db.execute(select(Booking.status).where(Booking.id == booking_id))
        return result.scalar_one_or_none()

    async def transition(
        self,
        booking_id: str | UUID,
        target_status: str | BookingStatus,
        actor: Actor,
        note: Optional[str] = None,
    ) -> Booking:
        """
        Move a booking along the lifecycle.

        pending -> confirmed -> active -> completed, and pending/confirmed ->
        cancelled. The update only applies if the booking still has the
        status it was validated against.

        Raises:
            BookingNotFoundError: If the booking does not exist
            InvalidTransitionError: If the move is not in the lifecycle or the
                booking changed underneath the caller
            AuthorizationError: If the actor may not perform the move
        """
        target = BookingStatus.parse(target_status)
        booking = await self.get_booking_by_id_or_raise(booking_id)
        booking_key = str(booking.id)
        current = booking.status

        if not current.can_transition_to(target):
            logger.warning(
                "Invalid booking transition",
                extra={"booking_id": booking_key, "from_status": current.value, "to_status": target.value}
            )
            raise InvalidTransitionError(booking_key, current.value, target.value)

        await self._authorize_transition(booking, target, actor)

        now = self.clock()
        try:
            if not await self._compare_and_set(booking.id, current, status=target, updated_at=now):
                fresh = await self._current_status(booking.id)
                metrics_collector.record_concurrency_conflict("transition")
                if fresh is None:
                    raise BookingNotFoundError(booking_key)
                raise InvalidTransitionError(booking_key, fresh.value, target.value)
            await self._record_event(booking.id, current, target, actor, note, now)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(booking)
        metrics_collector.record_transition(current.value, target.value)
        logger.info(
            "Booking transitioned",
            extra={
                "booking_id": booking_key,
                "from_status": current.value,
                "to_status": target.value,
                "actor_id": actor.user_id,
            }
        )
        return booking

    async def confirm_booking(self, booking_id: str, actor: Actor, note: Optional[str] = None) -> Booking:
        return await self.transition(booking_id, BookingStatus.CONFIRMED, actor, note)

    async def start_booking(self, booking_id: str, actor: Actor, note: Optional[str] = None) -> Booking:
        return await self.transition(booking_id, BookingStatus.ACTIVE, actor, note)

    async def complete_booking(self, booking_id: str, actor: Actor, note: Optional[str] = None) -> Booking:
        return await self.transition(booking_id, BookingStatus.COMPLETED, actor, note)

    async def cancel_booking(self, booking_id: str, actor: Actor, note: Optional[str] = None) -> Booking:
        return await self.transition(booking_id, BookingStatus.CANCELLED, actor, note)

    # Driver assignment

    async def assign_driver(self, request: AssignDriverRequest, actor: Actor) -> Booking:
        """
        Assign a driver (and optionally a route) to a pending or confirmed booking.

        A pending booking becomes confirmed.

        Raises:
            AuthorizationError: If the actor is not a fleet manager or admin
            BookingNotFoundError: If the booking does not exist
            InvalidBookingStateError: If the booking is not pending or confirmed
            NotFoundError: If the driver or route does not exist
        """
        if not actor.is_manager:
            raise AuthorizationError(
                detail="Only fleet managers can assign drivers",
                required_roles=[ActorRole.FLEET_MANAGER.value, ActorRole.ADMIN.value],
            )

        booking = await self.get_booking_by_id_or_raise(request.booking_id)
        booking_key = str(booking.id)
        current = booking.status
        if current not in ASSIGNABLE_STATUSES:
            logger.warning(
                "Driver assignment refused - booking not assignable",
                extra={"booking_id": booking_key, "status": current.value}
            )
            raise InvalidBookingStateError(booking_key, current.value, "driver assignment")

        driver = await self.driver_service.get_driver_by_id_or_raise(request.driver_id)
        route_id = booking.assigned_route_id
        if request.route_id:
            route = await self.route_service.get_route_by_id_or_raise(request.route_id)
            route_id = route.id

        now = self.clock()
        note = request.note or f"Driver {driver.id} assigned" + (f" on route {route_id}" if route_id else "")
        try:
            applied = await self._compare_and_set(
                booking.id,
                current,
                status=BookingStatus.CONFIRMED,
                assigned_driver_id=driver.id,
                assigned_route_id=route_id,
                updated_at=now,
            )
            if not applied:
                fresh = await self._current_status(booking.id)
                metrics_collector.record_concurrency_conflict("assign_driver")
                if fresh is None:
                    raise BookingNotFoundError(booking_key)
                raise InvalidBookingStateError(booking_key, fresh.value, "driver assignment")
            await self._record_event(booking.id, current, BookingStatus.CONFIRMED, actor, note, now)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(booking)
        metrics_collector.record_driver_assigned()
        if current is not BookingStatus.CONFIRMED:
            metrics_collector.record_transition(current.value, BookingStatus.CONFIRMED.value)

        logger.info(
            "Driver assigned to booking",
            extra={
                "booking_id": booking_key,
                "driver_id": str(driver.id),
                "route_id": str(route_id) if route_id else None,
                "from_status": current.value,
            }
        )
        return booking

    # Reads

    async def get_booking_by_id(self, booking_id: str | UUID) -> Optional[Booking]:
        try:
            booking_uuid = booking_id if isinstance(booking_id, UUID) else UUID(booking_id)
        except (ValueError, TypeError):
            return None
        stmt = (
            select(Booking)
            .where(Booking.id == booking_uuid)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_booking_by_id_or_raise(self, booking_id: str | UUID) -> Booking:
        """Get booking by ID or raise BookingNotFoundError."""
        booking = await self.get_booking_by_id(booking_id)
        if not booking:
            logger.warning("Booking not found", extra={"booking_id": str(booking_id)})
            raise BookingNotFoundError(str(booking_id))
        return booking

    async def _ensure_can_view(self, booking: Booking, actor: Actor) -> None:
        if actor.is_manager or booking.user_id == actor.user_id:
            return
        if actor.has_role(ActorRole.DRIVER) and await self._is_assigned_driver(booking, actor):
            return
        raise AuthorizationError(detail=f"Booking {booking.id} belongs to another user")

    async def get_booking(self, booking_id: str, actor: Actor) -> Booking:
        """
        Get a booking visible to the actor.

        Raises:
            BookingNotFoundError: If the booking does not exist
            AuthorizationError: If the booking belongs to someone else
        """
        booking = await self.get_booking_by_id_or_raise(booking_id)
        await self._ensure_can_view(booking, actor)
        return booking

    async def search_bookings(
        self, request: SearchBookingsRequest, actor: Actor
    ) -> tuple[list[Booking], Optional[str]]:
        """
        Search bookings with cursor pagination ordered by ID.

        Customers only see their own bookings and drivers only the bookings
        assigned to them.

        Returns:
            Page of bookings and the cursor of the next page, if any
        """
        conditions = []

        if not actor.is_manager:
            if actor.has_role(ActorRole.DRIVER):
                driver = await self.driver_service.get_driver_by_user_id(actor.user_id)
                if driver is None:
                    return [], None
                conditions.append(Booking.assigned_driver_id == driver.id)
            else:
                conditions.append(Booking.user_id == actor.user_id)

        if request.user_id:
            conditions.append(Booking.user_id == request.user_id)
        if request.vehicle_id:
            conditions.append(Booking.vehicle_id == _parse_filter_id(request.vehicle_id, "vehicle_id"))
        if request.driver_id:
            conditions.append(Booking.assigned_driver_id == _parse_filter_id(request.driver_id, "driver_id"))
        if request.status:
            conditions.append(Booking.status == request.status)
        if request.live_only:
            conditions.append(Booking.status.in_(list(LIVE_STATUSES)))
        if request.upcoming_only:
            conditions.append(Booking.start_date >= self.clock())
            conditions.append(Booking.status.in_([BookingStatus.PENDING, BookingStatus.CONFIRMED]))
        if request.cursor:
            try:
                conditions.append(Booking.id > UUID(request.cursor))
            except ValueError:
                logger.warning("Invalid cursor provided in booking search", extra={"cursor": request.cursor})

        stmt = select(Booking)
        if conditions:
            stmt = stmt.where(and_(*conditions))
        stmt = stmt.order_by(Booking.id).limit(request.limit + 1)

        result = await self.db.execute(stmt)
        bookings = list(result.scalars())

        has_next_page = len(bookings) > request.limit
        if has_next_page:
            bookings = bookings[:-1]
        next_cursor = str(bookings[-1].id) if has_next_page and bookings else None

        logger.info(
            "Booking search completed",
            extra={"total_found": len(bookings), "has_next_page": has_next_page, "actor_id": actor.user_id}
        )
        return bookings, next_cursor

    async def get_booking_history(self, booking_id: str, actor: Actor) -> list[BookingEvent]:
        """Audit events of a booking, oldest first."""
        booking = await self.get_booking_by_id_or_raise(booking_id)
        await self._ensure_can_view(booking, actor)

        stmt = (
            select(BookingEvent)
            .where(BookingEvent.booking_id == booking.id)
            .order_by(BookingEvent.sequence)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    # Edits and administration

    async def update_booking_details(self, request: UpdateBookingRequest, actor: Actor) -> Booking:
        """
        Edit the descriptive fields of a booking that has not finished.

        Raises:
            BookingNotFoundError: If the booking does not exist
            AuthorizationError: If the actor neither owns nor manages the booking
            InvalidBookingStateError: If the booking is completed or cancelled
        """
        booking = await self.get_booking_by_id_or_raise(request.booking_id)
        booking_key = str(booking.id)
        if not (actor.is_manager or booking.user_id == actor.user_id):
            raise AuthorizationError(detail=f"Booking {booking_key} belongs to another user")

        current = booking.status
        if current.is_terminal:
            raise InvalidBookingStateError(booking_key, current.value, "edits")

        changes = request.model_dump(include=set(EDITABLE_FIELDS), exclude_unset=True)
        if not changes:
            return booking

        try:
            if not await self._compare_and_set(booking.id, current, updated_at=self.clock(), **changes):
                fresh = await self._current_status(booking.id)
                if fresh is None:
                    raise BookingNotFoundError(booking_key)
                raise InvalidBookingStateError(booking_key, fresh.value, "edits")
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(booking)
        logger.info(
            "Booking details updated",
            extra={"booking_id": booking_key, "fields": sorted(changes), "actor_id": actor.user_id}
        )
        return booking

    async def delete_booking(self, booking_id: str, actor: Actor) -> None:
        """
        Physically remove a booking and its history.

        Raises:
            AuthorizationError: If the actor is not an admin
            BookingNotFoundError: If the booking does not exist
        """
        if not actor.is_admin:
            raise AuthorizationError(
                detail="Only administrators can delete bookings",
                required_roles=[ActorRole.ADMIN.value],
            )

        booking = await self.get_booking_by_id_or_raise(booking_id)
        booking_uuid = booking.id
        status = booking.status
        try:
            await self.db.execute(delete(BookingEvent).where(BookingEvent.booking_id == booking_uuid))
            await self.db.execute(delete(Booking).where(Booking.id == booking_uuid))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.warning(
            "Booking deleted by administrator",
            extra={"booking_id": str(booking_uuid), "status": status.value, "actor_id": actor.user_id}
        )

    # Audit trail

    async def _record_event(
        self,
        booking_id: UUID,
        from_status: Optional[BookingStatus],
        to_status: BookingStatus,
        actor: Actor,
        note: Optional[str],
        now: datetime,
    ) -> None:
        """Add an audit event to the current transaction."""
        if from_status is None:
            sequence = 1
        else:
            result = await self.db.execute(
                select(func.count()).select_from(BookingEvent).where(BookingEvent.booking_id == booking_id)
            )
            sequence = result.scalar_one() + 1

        self.db.add(BookingEvent(
            booking_id=booking_id,
            sequence=sequence,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor.user_id,
            actor_role=actor.primary_role,
            note=note,
            created_at=now,
        ))

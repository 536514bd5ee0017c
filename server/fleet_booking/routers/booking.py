"""Booking router for booking lifecycle operations."""

import logging
from typing import Awaitable, Callable

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock
from ..core.database import get_db
from ..core.dependencies import ClockDependency, RequiredActor
from ..core.exceptions import ProblemDetailsException
from ..models.booking import BookingStatus
from ..schemas.actor import Actor
from ..schemas.booking import (
    AssignDriverRequest,
    AvailabilityResponse,
    Booking,
    BookingActionRequest,
    BookingEvent,
    BookingHistoryResponse,
    CheckAvailabilityRequest,
    CreateBookingRequest,
    GetBookingRequest,
    SearchBookingsRequest,
    SearchBookingsResponse,
    TransitionBookingRequest,
    UpdateBookingRequest,
)
from ..services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


def _optional_id(value) -> str | None:
    return str(value) if value is not None else None


def _convert_booking_to_schema(booking_model) -> Booking:
    """Convert booking model to schema."""
    return Booking(
        id=str(booking_model.id),
        user_id=booking_model.user_id,
        vehicle_id=str(booking_model.vehicle_id),
        start_date=booking_model.start_date,
        end_date=booking_model.end_date,
        status=booking_model.status,
        purpose=booking_model.purpose,
        pickup_location=booking_model.pickup_location,
        dropoff_location=booking_model.dropoff_location,
        contact_number=booking_model.contact_number,
        notes=booking_model.notes,
        assigned_driver_id=_optional_id(booking_model.assigned_driver_id),
        assigned_route_id=_optional_id(booking_model.assigned_route_id),
        created_at=booking_model.created_at,
        updated_at=booking_model.updated_at,
    )


def _convert_event_to_schema(event_model) -> BookingEvent:
    """Convert booking event model to schema."""
    return BookingEvent(
        id=str(event_model.id),
        sequence=event_model.sequence,
        from_status=event_model.from_status,
        to_status=event_model.to_status,
        actor_id=event_model.actor_id,
        actor_role=event_model.actor_role,
        note=event_model.note,
        created_at=event_model.created_at,
    )


def _ok(response_data: BaseModel, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=response_data.model_dump(mode="json"))


async def _run(
    operation: str,
    func: Callable[[], Awaitable[Response]],
    context: dict,
) -> Response:
    """Run an endpoint body, passing domain errors through and wrapping the rest as 500."""
    try:
        return await func()

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            f"Unexpected error in {operation}",
            extra={**context, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/check-availability", response_model=AvailabilityResponse)
async def check_availability(
    request: CheckAvailabilityRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = RequiredActor,
    clock: Clock = ClockDependency,
) -> JSONResponse:
    """
    Check whether a vehicle is free for a half-open window.

    This is a read operation; it never reserves the vehicle.
    """
    booking_service = BookingService(db, clock)

    async def operation():
        return _ok(await booking_service.check_availability(request))

    return await _run("availability check", operation, {"vehicle_id": request.vehicle_id})


@router.post("/create", response_model=Booking, status_code=201)
async def create_booking(
    request: CreateBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = RequiredActor,
    clock: Clock = ClockDependency,
) -> JSONResponse:
    """
    Create a pending booking.

    The availability check and the insert are atomic: of two overlapping
    concurrent requests for one vehicle at most one succeeds.
    """
    booking_service = BookingService(db, clock)

    async def operation():
        booking = await booking_service.create_booking(request, actor)
        return _ok(_convert_booking_to_schema(booking), status_code=201)

    return await _run(
        "booking creation",
        operation,
        {"vehicle_id": request.vehicle_id, "actor_id": actor.user_id},
    )


async def _transition(
    booking_id: str,
    target: BookingStatus,
    note: str | None,
    db: AsyncSession,
    actor: Actor,
    clock: Clock,
) -> JSONResponse:
    booking_service = BookingService(db, clock)

    async def operation():
        booking = await booking_service.transition(booking_id, target, actor, note)
        return _ok(_convert_booking_to_schema(booking))

    return await _run(
        "booking transition",
        operation,
        {"booking_id": booking_id, "target_status": target.value, "actor_id": actor.user_id},
    )


@router.post("/transition", response_model=Booking)
async def transition_booking(
    request: TransitionBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = RequiredActor,
    clock: Clock = ClockDependency,
) -> JSONResponse:
    """Move a booking to another status of its lifecycle."""
    return await _transition(request.booking_id, request.target_status, request.note, db, actor, clock)


@router.post("/confirm", response_model=Booking)
async def confirm_booking(
    request: BookingActionRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = RequiredActor,
    clock: Clock = ClockDependency,
) -> JSONResponse:
    """Confirm a pending booking. Fleet managers only."""
    return await _transition(request.booking_id, BookingStatus.CONFIRMED, request.note, db, actor, clock)


@router.post("/start", response_model=Booking)
async def start_booking(
    request: BookingActionRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = RequiredActor,
    clock: Clock = ClockDependency,
) -> JSONResponse:
    """Start a confirmed booking (vehicle handed over)."""
    return await _transition(request.booking_id, BookingStatus.ACTIVE, request.note, db, actor, clock)


@router.post("/complete", response_model=Booking)
async def complete_booking(
    request: BookingActionRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = RequiredActor,
    clock: Clock = ClockDependency,
) -> JSONResponse:
    """Complete an active booking (vehicle returned)."""
    return await _transition(request.booking_id, BookingStatus.COMPLETED, request.note, db, actor, clock)


@router.post("/cancel", response_model=Booking)
async def cancel_booking(
    request: BookingActionRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = RequiredActor,
    clock: Clock = ClockDependency,
) -> JSONResponse:
    """Cancel a pending or confirmed booking, releasing its vehicle window."""
    return await _transition(request.booking_id, BookingStatus.CANCELLED, request.note, db, actor, clock)


@router.post("/assign-driver", response_model=Booking)
async def assign_driver(
    request: AssignDriverRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = RequiredActor,
    clock: Clock = ClockDependency,
) -> JSONResponse:
    """Assign a driver and optional route; a pending booking becomes confirmed."""
    booking_service = BookingService(db, clock)

    async def operation():
        booking = await booking_service.assign_driver(request, actor)
        return _ok(_convert_booking_to_schema(booking))

    return await _run(
        "driver assignment",
        operation,
        {"booking_id": request.booking_id, "driver_id": request.driver_id},
    )


@router.post("/get", response_model=Booking)
async def get_booking(
    request: GetBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = RequiredActor,
) -> JSONResponse:
    """
    Get booking details.

    Customers can only read their own bookings.
    """
    booking_service = BookingService(db)

    async def operation():
        booking = await booking_service.get_booking(request.booking_id, actor)
        return _ok(_convert_booking_to_schema(booking))

    return await _run("booking retrieval", operation, {"booking_id": request.booking_id})


@router.post("/search", response_model=SearchBookingsResponse)
async def search_bookings(
    request: SearchBookingsRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = RequiredActor,
    clock: Clock = ClockDependency,
) -> JSONResponse:
    """Search bookings with cursor-based pagination."""
    booking_service = BookingService(db, clock)

    async def operation():
        bookings, next_cursor = await booking_service.search_bookings(request, actor)
        return _ok(SearchBookingsResponse(
            items=[_convert_booking_to_schema(b) for b in bookings],
            next_cursor=next_cursor,
        ))

    return await _run("booking search", operation, {"actor_id": actor.user_id})


@router.post("/update", response_model=Booking)
async def update_booking(
    request: UpdateBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = RequiredActor,
    clock: Clock = ClockDependency,
) -> JSONResponse:
    """Edit purpose, locations, contact number or notes of an unfinished booking."""
    booking_service = BookingService(db, clock)

    async def operation():
        booking = await booking_service.update_booking_details(request, actor)
        return _ok(_convert_booking_to_schema(booking))

    return await _run("booking update", operation, {"booking_id": request.booking_id})


@router.post("/history", response_model=BookingHistoryResponse)
async def get_booking_history(
    request: GetBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = RequiredActor,
) -> JSONResponse:
    """Status history of a booking, oldest first."""
    booking_service = BookingService(db)

    async def operation():
        events = await booking_service.get_booking_history(request.booking_id, actor)
        return _ok(BookingHistoryResponse(
            booking_id=request.booking_id,
            events=[_convert_event_to_schema(e) for e in events],
        ))

    return await _run("booking history retrieval", operation, {"booking_id": request.booking_id})


@router.post("/delete", status_code=204)
async def delete_booking(
    request: GetBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = RequiredActor,
) -> Response:
    """Physically delete a booking and its history. Admins only."""
    booking_service = BookingService(db)

    async def operation():
        await booking_service.delete_booking(request.booking_id, actor)
        return Response(status_code=204)

    return await _run("booking deletion", operation, {"booking_id": request.booking_id})

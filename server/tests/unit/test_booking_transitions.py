"""Unit tests for the booking lifecycle: transitions, assignment, reads and edits."""

from datetime import datetime
from uuid import uuid4

import pytest
from sqlalchemy import update

from fleet_booking.core.exceptions import (
    AuthorizationError,
    BookingNotFoundError,
    InvalidBookingStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from fleet_booking.models.booking import ALLOWED_TRANSITIONS, Booking, BookingStatus
from fleet_booking.schemas.booking import (
    AssignDriverRequest,
    CreateBookingRequest,
    SearchBookingsRequest,
    TransitionBookingRequest,
    UpdateBookingRequest,
)
from fleet_booking.services.booking_service import BookingService


@pytest.fixture
def service(test_session, clock):
    return BookingService(test_session, clock)


@pytest.fixture
def booking_factory(service, vehicle_id, customer):
    """Create pending bookings on consecutive June days and return their IDs."""
    days = iter(range(1, 29))

    async def _create(actor=None) -> str:
        day = next(days)
        booking = await service.create_booking(
            CreateBookingRequest(
                vehicle_id=vehicle_id,
                start_date=datetime(2024, 6, day, 9),
                end_date=datetime(2024, 6, day, 17),
            ),
            actor or customer,
        )
        return str(booking.id)

    return _create


# State machine

@pytest.mark.parametrize(
    "value,expected",
    [
        ("pending", BookingStatus.PENDING),
        ("CONFIRMED", BookingStatus.CONFIRMED),
        ("assigned", BookingStatus.CONFIRMED),
        ("in_progress", BookingStatus.ACTIVE),
        ("In-Progress", BookingStatus.ACTIVE),
        ("canceled", BookingStatus.CANCELLED),
        (" completed ", BookingStatus.COMPLETED),
    ],
)
def test_status_aliases(value, expected):
    assert BookingStatus.parse(value) is expected


def test_unknown_status_rejected():
    with pytest.raises(ValueError):
        BookingStatus.parse("teleported")


def test_transition_request_accepts_aliases():
    request = TransitionBookingRequest(booking_id="b-1", target_status="in_progress")
    assert request.target_status is BookingStatus.ACTIVE


def test_terminal_statuses_allow_nothing():
    assert BookingStatus.COMPLETED.is_terminal
    assert BookingStatus.CANCELLED.is_terminal
    assert not any(BookingStatus.ACTIVE.can_transition_to(s) for s in (BookingStatus.CANCELLED, BookingStatus.PENDING))
    assert set(ALLOWED_TRANSITIONS) == set(BookingStatus)


@pytest.mark.asyncio
async def test_full_lifecycle(service, booking_factory, manager):
    booking_id = await booking_factory()

    confirmed = await service.confirm_booking(booking_id, manager)
    assert confirmed.status == BookingStatus.CONFIRMED
    started = await service.start_booking(booking_id, manager)
    assert started.status == BookingStatus.ACTIVE
    completed = await service.complete_booking(booking_id, manager, note="Returned with full tank")
    assert completed.status == BookingStatus.COMPLETED

    history = await service.get_booking_history(booking_id, manager)
    assert [e.to_status for e in history] == [
        BookingStatus.PENDING,
        BookingStatus.CONFIRMED,
        BookingStatus.ACTIVE,
        BookingStatus.COMPLETED,
    ]
    assert [e.sequence for e in history] == [1, 2, 3, 4]
    assert history[-1].note == "Returned with full tank"
    assert history[-1].actor_role == "fleet_manager"


@pytest.mark.asyncio
async def test_pending_cannot_skip_to_active(service, booking_factory, manager):
    booking_id = await booking_factory()

    with pytest.raises(InvalidTransitionError) as exc_info:
        await service.transition(booking_id, "active", manager)

    assert exc_info.value.problem_details["current_status"] == "pending"
    assert exc_info.value.problem_details["target_status"] == "active"


@pytest.mark.asyncio
async def test_repeating_a_transition_fails(service, booking_factory, manager):
    booking_id = await booking_factory()
    await service.confirm_booking(booking_id, manager)

    with pytest.raises(InvalidTransitionError):
        await service.confirm_booking(booking_id, manager)

    booking = await service.get_booking(booking_id, manager)
    assert booking.status == BookingStatus.CONFIRMED


@pytest.mark.asyncio
async def test_cancel_active_or_completed_fails(service, booking_factory, manager):
    booking_id = await booking_factory()
    await service.confirm_booking(booking_id, manager)
    await service.start_booking(booking_id, manager)

    with pytest.raises(InvalidTransitionError):
        await service.cancel_booking(booking_id, manager)

    await service.complete_booking(booking_id, manager)
    with pytest.raises(InvalidTransitionError):
        await service.cancel_booking(booking_id, manager)


@pytest.mark.asyncio
async def test_transition_unknown_booking(service, manager):
    with pytest.raises(BookingNotFoundError):
        await service.confirm_booking(str(uuid4()), manager)
    with pytest.raises(BookingNotFoundError):
        await service.confirm_booking("garbage", manager)


@pytest.mark.asyncio
async def test_concurrent_writer_wins(service, booking_factory, manager, monkeypatch):
    """A transition validated against a status that changed underneath it fails against the fresh status."""
    booking_id = await booking_factory()
    real_authorize = BookingService._authorize_transition

    async def cancel_underneath(self, booking, target, actor):
        await real_authorize(self, booking, target, actor)
        await self.db.execute(
            update(Booking).where(Booking.id == booking.id).values(status=BookingStatus.CANCELLED)
        )

    monkeypatch.setattr(BookingService, "_authorize_transition", cancel_underneath)

    with pytest.raises(InvalidTransitionError) as exc_info:
        await service.confirm_booking(booking_id, manager)

    assert exc_info.value.problem_details["current_status"] == "cancelled"


# Authorization

@pytest.mark.asyncio
async def test_customer_cannot_confirm(service, booking_factory, customer):
    booking_id = await booking_factory()

    with pytest.raises(AuthorizationError):
        await service.confirm_booking(booking_id, customer)


@pytest.mark.asyncio
async def test_owner_cancels_but_stranger_cannot(service, booking_factory, customer, other_customer):
    booking_id = await booking_factory()

    with pytest.raises(AuthorizationError):
        await service.cancel_booking(booking_id, other_customer)

    cancelled = await service.cancel_booking(booking_id, customer, note="Plans changed")
    assert cancelled.status == BookingStatus.CANCELLED


@pytest.mark.asyncio
async def test_assigned_driver_starts_and_completes(service, booking_factory, manager, driver_actor, driver_id):
    booking_id = await booking_factory()

    with pytest.raises(AuthorizationError):
        await service.assign_driver(AssignDriverRequest(booking_id=booking_id, driver_id=driver_id), driver_actor)

    await service.assign_driver(AssignDriverRequest(booking_id=booking_id, driver_id=driver_id), manager)

    started = await service.start_booking(booking_id, driver_actor)
    assert started.status == BookingStatus.ACTIVE
    completed = await service.complete_booking(booking_id, driver_actor)
    assert completed.status == BookingStatus.COMPLETED


@pytest.mark.asyncio
async def test_unassigned_driver_cannot_start(service, booking_factory, manager, driver_actor, driver_id):
    booking_id = await booking_factory()
    await service.confirm_booking(booking_id, manager)

    with pytest.raises(AuthorizationError):
        await service.start_booking(booking_id, driver_actor)


# Driver assignment

@pytest.mark.asyncio
async def test_assign_driver_confirms_pending_booking(service, booking_factory, manager, driver_id, route_id):
    booking_id = await booking_factory()

    booking = await service.assign_driver(
        AssignDriverRequest(booking_id=booking_id, driver_id=driver_id, route_id=route_id),
        manager,
    )

    assert booking.status == BookingStatus.CONFIRMED
    assert str(booking.assigned_driver_id) == driver_id
    assert str(booking.assigned_route_id) == route_id

    history = await service.get_booking_history(booking_id, manager)
    assert (history[-1].from_status, history[-1].to_status) == (BookingStatus.PENDING, BookingStatus.CONFIRMED)


@pytest.mark.asyncio
async def test_reassign_driver_keeps_route(service, booking_factory, manager, driver_id, route_id, test_session, clock):
    from fleet_booking.schemas.driver import CreateDriverRequest
    from fleet_booking.services.driver_service import DriverService

    booking_id = await booking_factory()
    await service.assign_driver(
        AssignDriverRequest(booking_id=booking_id, driver_id=driver_id, route_id=route_id), manager
    )
    relief = await DriverService(test_session, clock).create_driver(
        CreateDriverRequest(name="Sam Okafor", email="sam@example.com", license_number="DL-5820")
    )

    booking = await service.assign_driver(
        AssignDriverRequest(booking_id=booking_id, driver_id=str(relief.id)), manager
    )

    assert booking.status == BookingStatus.CONFIRMED
    assert booking.assigned_driver_id == relief.id
    assert str(booking.assigned_route_id) == route_id


@pytest.mark.asyncio
async def test_assign_driver_to_active_booking_fails(service, booking_factory, manager, driver_id):
    booking_id = await booking_factory()
    await service.confirm_booking(booking_id, manager)
    await service.start_booking(booking_id, manager)

    with pytest.raises(InvalidBookingStateError) as exc_info:
        await service.assign_driver(AssignDriverRequest(booking_id=booking_id, driver_id=driver_id), manager)
    assert exc_info.value.problem_details["code"] == "INVALID_BOOKING_STATE"


@pytest.mark.asyncio
async def test_assign_unknown_driver_or_route(service, booking_factory, manager, driver_id):
    booking_id = await booking_factory()

    with pytest.raises(NotFoundError):
        await service.assign_driver(AssignDriverRequest(booking_id=booking_id, driver_id=str(uuid4())), manager)
    with pytest.raises(NotFoundError):
        await service.assign_driver(
            AssignDriverRequest(booking_id=booking_id, driver_id=driver_id, route_id=str(uuid4())), manager
        )


# Reads

@pytest.mark.asyncio
async def test_customer_reads_only_own_booking(service, booking_factory, customer, other_customer):
    booking_id = await booking_factory()

    booking = await service.get_booking(booking_id, customer)
    assert str(booking.id) == booking_id

    with pytest.raises(AuthorizationError):
        await service.get_booking(booking_id, other_customer)
    with pytest.raises(AuthorizationError):
        await service.get_booking_history(booking_id, other_customer)


@pytest.mark.asyncio
async def test_search_scopes_customers_to_their_bookings(
    service, booking_factory, customer, other_customer, manager
):
    mine = {await booking_factory(customer) for _ in range(2)}
    theirs = await booking_factory(other_customer)

    found, cursor = await service.search_bookings(SearchBookingsRequest(), customer)
    assert {str(b.id) for b in found} == mine
    assert cursor is None

    # Asking for someone else's bookings yields nothing
    found, _ = await service.search_bookings(SearchBookingsRequest(user_id=other_customer.user_id), customer)
    assert found == []

    found, _ = await service.search_bookings(SearchBookingsRequest(user_id=other_customer.user_id), manager)
    assert [str(b.id) for b in found] == [theirs]


@pytest.mark.asyncio
async def test_search_filters_and_pagination(service, booking_factory, manager):
    ids = [await booking_factory() for _ in range(4)]
    await service.cancel_booking(ids[0], manager)
    await service.confirm_booking(ids[1], manager)

    live, _ = await service.search_bookings(SearchBookingsRequest(live_only=True), manager)
    assert {str(b.id) for b in live} == set(ids[1:])

    confirmed, _ = await service.search_bookings(SearchBookingsRequest(status="assigned"), manager)
    assert [str(b.id) for b in confirmed] == [ids[1]]

    page, cursor = await service.search_bookings(SearchBookingsRequest(limit=3), manager)
    assert len(page) == 3
    rest, cursor = await service.search_bookings(SearchBookingsRequest(limit=3, cursor=cursor), manager)
    assert len(rest) == 1
    assert cursor is None
    assert {str(b.id) for b in page + rest} == set(ids)


@pytest.mark.asyncio
async def test_search_rejects_malformed_filter(service, manager):
    with pytest.raises(ValidationError):
        await service.search_bookings(SearchBookingsRequest(vehicle_id="nope"), manager)


@pytest.mark.asyncio
async def test_driver_searches_assigned_bookings(service, booking_factory, manager, driver_actor, driver_id):
    assigned = await booking_factory()
    await booking_factory()
    await service.assign_driver(AssignDriverRequest(booking_id=assigned, driver_id=driver_id), manager)

    found, _ = await service.search_bookings(SearchBookingsRequest(), driver_actor)

    assert [str(b.id) for b in found] == [assigned]


# Edits and deletion

@pytest.mark.asyncio
async def test_update_booking_details(service, booking_factory, customer):
    booking_id = await booking_factory()

    booking = await service.update_booking_details(
        UpdateBookingRequest(booking_id=booking_id, dropoff_location="North Harbour", notes="Child seat"),
        customer,
    )

    assert booking.dropoff_location == "North Harbour"
    assert booking.notes == "Child seat"
    assert booking.status == BookingStatus.PENDING


@pytest.mark.asyncio
async def test_update_terminal_booking_fails(service, booking_factory, customer, other_customer):
    booking_id = await booking_factory()

    with pytest.raises(AuthorizationError):
        await service.update_booking_details(UpdateBookingRequest(booking_id=booking_id, notes="x"), other_customer)

    await service.cancel_booking(booking_id, customer)
    with pytest.raises(InvalidBookingStateError):
        await service.update_booking_details(UpdateBookingRequest(booking_id=booking_id, notes="x"), customer)


@pytest.mark.asyncio
async def test_delete_booking_requires_admin(service, booking_factory, manager, admin):
    booking_id = await booking_factory()

    with pytest.raises(AuthorizationError):
        await service.delete_booking(booking_id, manager)

    await service.delete_booking(booking_id, admin)

    assert await service.get_booking_by_id(booking_id) is None
    with pytest.raises(BookingNotFoundError):
        await service.delete_booking(booking_id, admin)

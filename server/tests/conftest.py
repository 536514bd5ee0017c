"""Test configuration and fixtures."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from fleet_booking.core.clock import fixed_clock
from fleet_booking.core.config import settings
from fleet_booking.core.database import Base, get_db
from fleet_booking.core.dependencies import JWT_ALGORITHM, get_clock
from fleet_booking.models import *  # noqa: F403 - Import all models
from fleet_booking.schemas.actor import Actor, ActorRole
from fleet_booking.schemas.driver import CreateDriverRequest
from fleet_booking.schemas.route import CreateRouteRequest
from fleet_booking.schemas.vehicle import CreateVehicleRequest
from fleet_booking.services.driver_service import DriverService
from fleet_booking.services.route_service import RouteService
from fleet_booking.services.vehicle_service import VehicleService

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Every test runs at this instant unless it builds its own clock
NOW = datetime(2024, 5, 1, 8, 0, 0)


def make_token(user_id: str, *roles: str, expires_in: timedelta = timedelta(hours=1)) -> str:
    """Sign a bearer token the way the identity provider does."""
    payload = {
        "sub": user_id,
        "username": user_id,
        "roles": list(roles),
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(payload, settings.bearer_token_secret, algorithm=JWT_ALGORITHM)


@pytest.fixture
def auth_headers():
    """Build Authorization headers for a user with the given roles."""

    def _headers(user_id: str, *roles: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id, *roles)}"}

    return _headers


@pytest.fixture
def clock():
    return fixed_clock(NOW)


@pytest.fixture
def customer() -> Actor:
    return Actor(user_id="customer-1", username="alice", roles=[ActorRole.CUSTOMER])


@pytest.fixture
def other_customer() -> Actor:
    return Actor(user_id="customer-2", username="bob", roles=[ActorRole.CUSTOMER])


@pytest.fixture
def manager() -> Actor:
    return Actor(user_id="manager-1", username="morgan", roles=[ActorRole.FLEET_MANAGER])


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id="admin-1", username="root", roles=[ActorRole.ADMIN])


@pytest.fixture
def driver_actor() -> Actor:
    return Actor(user_id="driver-user-1", username="dana", roles=[ActorRole.DRIVER])


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session configured like the application's."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session, clock):
    """Create the application with the database and clock overridden."""
    from fleet_booking.main import create_app

    app = create_app()

    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def sample_vehicle_data():
    """Sample vehicle data for testing."""
    return {
        "name": "Van 01",
        "license_plate": "FLT-001",
        "model": "Ford Transit",
        "vehicle_type": "van",
    }


@pytest.fixture
def sample_driver_data():
    """Sample driver data; linked to the driver_actor login."""
    return {
        "name": "Dana Reyes",
        "email": "dana.reyes@example.com",
        "license_number": "DL-4471",
        "user_id": "driver-user-1",
    }


@pytest_asyncio.fixture
async def vehicle_id(test_session, clock, sample_vehicle_data) -> str:
    """ID of a bookable vehicle."""
    vehicle = await VehicleService(test_session, clock).create_vehicle(
        CreateVehicleRequest(**sample_vehicle_data)
    )
    return str(vehicle.id)


@pytest_asyncio.fixture
async def driver_id(test_session, clock, sample_driver_data) -> str:
    """ID of a driver linked to the driver_actor login."""
    driver = await DriverService(test_session, clock).create_driver(CreateDriverRequest(**sample_driver_data))
    return str(driver.id)


@pytest_asyncio.fixture
async def route_id(test_session, clock) -> str:
    route = await RouteService(test_session, clock).create_route(
        CreateRouteRequest(name="Airport shuttle", origin="Depot", destination="Airport", distance_km=31.5)
    )
    return str(route.id)

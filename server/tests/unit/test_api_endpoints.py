"""Integration tests for API endpoints."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
import pytest_asyncio

from fleet_booking.core.config import settings
from fleet_booking.core.dependencies import JWT_ALGORITHM

CUSTOMER = ("customer-1", "customer")
OTHER_CUSTOMER = ("customer-2", "customer")
MANAGER = ("manager-1", "fleet_manager")
ADMIN = ("admin-1", "admin")


@pytest.fixture
def customer_headers(auth_headers):
    return auth_headers(*CUSTOMER)


@pytest.fixture
def manager_headers(auth_headers):
    return auth_headers(*MANAGER)


@pytest_asyncio.fixture
async def api_vehicle_id(test_client, manager_headers, sample_vehicle_data):
    response = await test_client.post("/v1/vehicle/create", json=sample_vehicle_data, headers=manager_headers)
    assert response.status_code == 201
    return response.json()["id"]


def booking_body(vehicle_id: str, start: str, end: str, **extra) -> dict:
    return {"vehicle_id": vehicle_id, "start_date": start, "end_date": end, **extra}


@pytest.mark.asyncio
async def test_missing_auth(test_client, sample_vehicle_data):
    """Requests without a bearer token are rejected as Problem Details."""
    response = await test_client.post("/v1/vehicle/create", json=sample_vehicle_data)

    assert response.status_code == 401
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.headers["www-authenticate"] == "Bearer"
    data = response.json()
    assert data["status"] == 401
    assert "authorization" in data["title"].lower()


@pytest.mark.asyncio
async def test_invalid_token(test_client, sample_vehicle_data):
    response = await test_client.post(
        "/v1/vehicle/search",
        json={},
        headers={"Authorization": "Bearer not-a-jwt"}
    )

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHENTICATED"


@pytest.mark.parametrize(
    "claims",
    [
        {"sub": "x" * 200, "roles": ["customer"]},
        {"sub": "customer-1", "roles": 5},
        {"sub": "customer-1", "roles": "admin"},
    ],
)
@pytest.mark.asyncio
async def test_malformed_token_claims_are_unauthenticated(test_client, claims):
    """Tokens that verify but carry unusable claims are rejected as 401, not 500."""
    token = jwt.encode(
        {**claims, "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        settings.bearer_token_secret,
        algorithm=JWT_ALGORITHM,
    )

    response = await test_client.post("/v1/vehicle/search", json={}, headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    data = response.json()
    assert data["code"] == "UNAUTHENTICATED"
    assert data["detail"] == "Invalid token payload"


@pytest.mark.asyncio
async def test_customer_cannot_register_vehicle(test_client, customer_headers, sample_vehicle_data):
    response = await test_client.post("/v1/vehicle/create", json=sample_vehicle_data, headers=customer_headers)

    assert response.status_code == 403
    data = response.json()
    assert data["code"] == "FORBIDDEN"
    assert "fleet_manager" in data["required_roles"]


@pytest.mark.asyncio
async def test_vehicle_endpoints(test_client, manager_headers, customer_headers, api_vehicle_id):
    response = await test_client.post("/v1/vehicle/get", json={"vehicle_id": api_vehicle_id}, headers=customer_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "available"

    response = await test_client.post(
        "/v1/vehicle/set-status",
        json={"vehicle_id": api_vehicle_id, "status": "maintenance"},
        headers=manager_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "maintenance"

    response = await test_client.post("/v1/vehicle/search", json={"status": "maintenance"}, headers=customer_headers)
    assert response.status_code == 200
    assert [v["id"] for v in response.json()["items"]] == [api_vehicle_id]


@pytest.mark.asyncio
async def test_check_availability_endpoint(test_client, customer_headers, api_vehicle_id):
    response = await test_client.post(
        "/v1/booking/check-availability",
        json=booking_body(api_vehicle_id, "2024-06-01T10:00:00Z", "2024-06-01T12:00:00Z"),
        headers=customer_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["available"] is True
    assert data["conflicts"] == []
    assert data["start_date"] == "2024-06-01T10:00:00"


@pytest.mark.asyncio
async def test_create_booking_and_conflict(test_client, customer_headers, auth_headers, api_vehicle_id):
    response = await test_client.post(
        "/v1/booking/create",
        json=booking_body(api_vehicle_id, "2024-06-01T10:00:00Z", "2024-06-01T12:00:00Z", purpose="Delivery"),
        headers=customer_headers,
    )
    assert response.status_code == 201
    booking = response.json()
    assert booking["status"] == "pending"
    assert booking["user_id"] == CUSTOMER[0]
    assert booking["purpose"] == "Delivery"

    response = await test_client.post(
        "/v1/booking/create",
        json=booking_body(api_vehicle_id, "2024-06-01T11:00:00Z", "2024-06-01T13:00:00Z"),
        headers=auth_headers(*OTHER_CUSTOMER),
    )
    assert response.status_code == 409
    assert response.headers["content-type"].startswith("application/problem+json")
    problem = response.json()
    assert problem["code"] == "VEHICLE_UNAVAILABLE"
    assert problem["retryable"] is False
    assert problem["conflicting_resource"]["booking_id"] == booking["id"]
    assert booking["id"] in problem["detail"]
    assert problem["instance"] == "/v1/booking/create"


@pytest.mark.asyncio
async def test_create_booking_validation_errors(test_client, customer_headers, api_vehicle_id):
    response = await test_client.post(
        "/v1/booking/create",
        json=booking_body(api_vehicle_id, "2024-05-01T07:00:00Z", "2024-05-01T10:00:00Z"),
        headers=customer_headers,
    )
    assert response.status_code == 400
    assert response.json()["code"] == "PAST_START_DATE"

    response = await test_client.post(
        "/v1/booking/create",
        json=booking_body(api_vehicle_id, "2024-06-01T12:00:00Z", "2024-06-01T12:00:00Z"),
        headers=customer_headers,
    )
    assert response.status_code == 400
    data = response.json()
    assert data["code"] == "INVALID_INTERVAL"
    assert data["violations"][0]["path"] == "start_date"


@pytest.mark.asyncio
async def test_create_booking_invalid_body(test_client, customer_headers, api_vehicle_id):
    response = await test_client.post(
        "/v1/booking/create",
        json={"vehicle_id": api_vehicle_id, "start_date": "tomorrow"},
        headers=customer_headers,
    )

    assert response.status_code == 422
    data = response.json()
    assert data["status"] == 422
    paths = {v["path"] for v in data["violations"]}
    assert {"start_date", "end_date"} <= paths


@pytest.mark.asyncio
async def test_create_booking_for_empty_customer_id(test_client, manager_headers, api_vehicle_id):
    """An empty on-behalf customer id is a validation failure, never a lost race."""
    response = await test_client.post(
        "/v1/booking/create",
        json=booking_body(api_vehicle_id, "2024-06-01T10:00:00Z", "2024-06-01T12:00:00Z", user_id=""),
        headers=manager_headers,
    )

    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    assert [v["path"] for v in data["violations"]] == ["user_id"]

    response = await test_client.post(
        "/v1/booking/check-availability",
        json=booking_body(api_vehicle_id, "2024-06-01T10:00:00Z", "2024-06-01T12:00:00Z"),
        headers=manager_headers,
    )
    assert response.json()["available"] is True


@pytest.mark.asyncio
async def test_unknown_vehicle_and_booking(test_client, customer_headers):
    response = await test_client.post(
        "/v1/booking/check-availability",
        json=booking_body("00000000-0000-0000-0000-000000000000", "2024-06-01T10:00:00Z", "2024-06-01T12:00:00Z"),
        headers=customer_headers,
    )
    assert response.status_code == 404
    assert response.json()["code"] == "VEHICLE_NOT_FOUND"

    response = await test_client.post(
        "/v1/booking/get",
        json={"booking_id": "00000000-0000-0000-0000-000000000000"},
        headers=customer_headers,
    )
    assert response.status_code == 404
    assert response.json()["code"] == "BOOKING_NOT_FOUND"


@pytest.mark.asyncio
async def test_booking_lifecycle_over_http(test_client, customer_headers, manager_headers, auth_headers, api_vehicle_id):
    response = await test_client.post(
        "/v1/booking/create",
        json=booking_body(api_vehicle_id, "2024-06-02T09:00:00Z", "2024-06-02T17:00:00Z"),
        headers=customer_headers,
    )
    booking_id = response.json()["id"]

    # Route vocabulary is accepted, but the lifecycle still applies
    response = await test_client.post(
        "/v1/booking/transition",
        json={"booking_id": booking_id, "target_status": "in_progress"},
        headers=manager_headers,
    )
    assert response.status_code == 409
    assert response.json()["code"] == "INVALID_TRANSITION"

    response = await test_client.post("/v1/booking/confirm", json={"booking_id": booking_id}, headers=customer_headers)
    assert response.status_code == 403

    for action, status in (("confirm", "confirmed"), ("start", "active"), ("complete", "completed")):
        response = await test_client.post(
            f"/v1/booking/{action}", json={"booking_id": booking_id}, headers=manager_headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == status

    response = await test_client.post("/v1/booking/history", json={"booking_id": booking_id}, headers=customer_headers)
    assert response.status_code == 200
    events = response.json()["events"]
    assert [e["to_status"] for e in events] == ["pending", "confirmed", "active", "completed"]

    response = await test_client.post(
        "/v1/booking/get", json={"booking_id": booking_id}, headers=auth_headers(*OTHER_CUSTOMER)
    )
    assert response.status_code == 403

    response = await test_client.post("/v1/booking/delete", json={"booking_id": booking_id}, headers=manager_headers)
    assert response.status_code == 403

    response = await test_client.post(
        "/v1/booking/delete", json={"booking_id": booking_id}, headers=auth_headers(*ADMIN)
    )
    assert response.status_code == 204


@pytest.mark.asyncio
async def test_assign_driver_endpoint(test_client, customer_headers, manager_headers, api_vehicle_id):
    response = await test_client.post(
        "/v1/driver/create",
        json={"name": "Dana Reyes", "email": "dana@example.com", "license_number": "DL-4471"},
        headers=manager_headers,
    )
    assert response.status_code == 201
    driver_id = response.json()["id"]

    response = await test_client.post(
        "/v1/route/create",
        json={"name": "Harbour run", "origin": "Depot", "destination": "North Harbour", "distance_km": 12},
        headers=manager_headers,
    )
    assert response.status_code == 201
    route_id = response.json()["id"]

    response = await test_client.post(
        "/v1/booking/create",
        json=booking_body(api_vehicle_id, "2024-06-03T09:00:00Z", "2024-06-03T12:00:00Z"),
        headers=customer_headers,
    )
    booking_id = response.json()["id"]

    response = await test_client.post(
        "/v1/booking/assign-driver",
        json={"booking_id": booking_id, "driver_id": driver_id, "route_id": route_id},
        headers=manager_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "confirmed"
    assert data["assigned_driver_id"] == driver_id
    assert data["assigned_route_id"] == route_id


@pytest.mark.asyncio
async def test_search_and_update_endpoints(test_client, customer_headers, api_vehicle_id):
    response = await test_client.post(
        "/v1/booking/create",
        json=booking_body(api_vehicle_id, "2024-06-04T09:00:00Z", "2024-06-04T12:00:00Z"),
        headers=customer_headers,
    )
    booking_id = response.json()["id"]

    response = await test_client.post(
        "/v1/booking/update",
        json={"booking_id": booking_id, "pickup_location": "Gate 4"},
        headers=customer_headers,
    )
    assert response.status_code == 200
    assert response.json()["pickup_location"] == "Gate 4"

    response = await test_client.post(
        "/v1/booking/search",
        json={"upcoming_only": True, "status": "pending"},
        headers=customer_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert [b["id"] for b in data["items"]] == [booking_id]
    assert data["next_cursor"] is None


@pytest.mark.asyncio
async def test_metrics_endpoint(test_client):
    """Test the Prometheus metrics endpoint."""
    response = await test_client.get("/metrics")

    assert response.status_code == 200
    assert "booking_availability_checks_total" in response.text

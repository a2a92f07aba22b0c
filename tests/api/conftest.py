"""API test fixtures: TestClient over in-memory scheduling services."""

import pytest
from starlette.testclient import TestClient

from api.app import create_app


WEBHOOK_SECRET = "whsec_test"


@pytest.fixture
def webhook_secret():
    return WEBHOOK_SECRET


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(services, webhook_secret):
    """Full app: actor + request-id middleware, error handlers, data/actions routes."""
    services["webhook_secret"] = webhook_secret
    return create_app(services)


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def booking_payload():
    """JSON body for a booking create action (one oil change, bay1, 10:00)."""

    def _make(start: str = "10:00", **overrides) -> dict:
        data = {
            "customer_id": "00000000-0000-0000-0000-000000000001",
            "vehicle": {"plate_number": "ABC 1234", "make": "Toyota", "vehicle_type": "sedan"},
            "line_items": [{"service_id": "00000000-0000-0000-0000-0000000000a1", "quantity": 1}],
            "scheduled_date": "2024-06-01",
            "start_time": start,
            "resource": "bay1",
        }
        data.update(overrides)
        return data

    return _make


@pytest.fixture
def create_booking(client, booking_payload):
    """POST a booking create action and return the booking JSON."""

    def _create(**overrides) -> dict:
        response = client.post("/api/actions", json={
            "domain": "booking",
            "action": "create",
            "data": booking_payload(**overrides),
        })
        assert response.status_code == 200, response.text
        return response.json()["data"]

    return _create

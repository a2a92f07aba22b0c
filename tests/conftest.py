"""Shared test fixtures for the scheduling test suite."""

import os
from datetime import date, time
from decimal import Decimal
from pathlib import Path
from unittest.mock import Mock
from uuid import UUID, uuid4

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
# override=True ensures .env takes precedence over shell env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from clients.payment_client import GatewayPayment, PaymentGatewayClient
from core.config import SchedulingConfig
from core.event_bus import EventBus
from core.lifecycle import creation_entry
from core.models import (
    Booking, BookingCreate, BookingStatus, Customer, LineItemRequest, Pricing, ServiceCategory,
    ServiceDefinition, TimeInterval, VehicleSnapshot, VehicleType,
)
from core.stores.base import format_booking_number
from core.stores.memory import InMemoryBookingStore, InMemoryCatalogStore, InMemoryCustomerStore
from core.wiring import build_services
from utils.actor_context import clear_current_actor
from utils.clock import now_utc


# =============================================================================
# TEST CONSTANTS
# =============================================================================

# A Saturday in summer, no promotions unless a test adds one
TEST_DAY = date(2024, 6, 1)
TEST_RESOURCE = "bay1"

TEST_CUSTOMER_ID = UUID("00000000-0000-0000-0000-000000000001")
OIL_CHANGE_ID = UUID("00000000-0000-0000-0000-0000000000a1")
BRAKE_SERVICE_ID = UUID("00000000-0000-0000-0000-0000000000b1")


# =============================================================================
# CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_actor_context():
    """Ensure clean actor context before and after each test."""
    clear_current_actor()
    yield
    clear_current_actor()


# =============================================================================
# CATALOG & CUSTOMER FIXTURES
# =============================================================================


@pytest.fixture
def make_service():
    """Factory for catalog entries with sensible defaults."""

    def _make(
        name: str = "Service",
        base_price: str = "100.00",
        duration_minutes: int = 30,
        vehicle_types: set[VehicleType] | None = None,
        **kwargs,
    ) -> ServiceDefinition:
        return ServiceDefinition(
            id=kwargs.pop("id", uuid4()),
            name=name,
            category=kwargs.pop("category", ServiceCategory.MAINTENANCE),
            base_price=Decimal(base_price),
            duration_minutes=duration_minutes,
            vehicle_types=frozenset(vehicle_types or ()),
            **kwargs,
        )

    return _make


@pytest.fixture
def oil_change(make_service):
    """150.00 SAR, 30 minutes, any vehicle."""
    return make_service(
        id=OIL_CHANGE_ID, name="Oil Change", base_price="150.00",
        duration_minutes=30, category=ServiceCategory.OIL_CHANGE,
    )


@pytest.fixture
def brake_service(make_service):
    """80.00 SAR, 60 minutes, sedans and SUVs only."""
    return make_service(
        id=BRAKE_SERVICE_ID, name="Brake Inspection", base_price="80.00",
        duration_minutes=60, category=ServiceCategory.BRAKE_SERVICE,
        vehicle_types={VehicleType.SEDAN, VehicleType.SUV},
    )


@pytest.fixture
def customer():
    return Customer(
        id=TEST_CUSTOMER_ID,
        first_name="Fahad",
        last_name="Test",
        phone="+966500000000",
        vehicle_type=VehicleType.SEDAN,
    )


@pytest.fixture
def catalog_store(oil_change, brake_service):
    return InMemoryCatalogStore([oil_change, brake_service])


@pytest.fixture
def customer_store(customer):
    return InMemoryCustomerStore([customer])


@pytest.fixture
def booking_store():
    return InMemoryBookingStore()


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def config():
    return SchedulingConfig()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def gateway():
    """Payment gateway double; tests set return values per call."""
    mock = Mock(spec=PaymentGatewayClient)
    mock.create_payment.return_value = GatewayPayment(
        id="pay_test_1", status="initiated", amount=Decimal("0.00"), currency="SAR",
        transaction_url="https://pay.example.com/3ds/pay_test_1",
    )
    return mock


@pytest.fixture
def services(catalog_store, customer_store, booking_store, config, gateway, event_bus):
    return build_services(
        catalog_store,
        customer_store,
        booking_store,
        config=config,
        gateway=gateway,
        event_bus=event_bus,
    )


@pytest.fixture
def scheduling(services):
    return services["scheduling"]


@pytest.fixture
def catalog(services):
    return services["catalog"]


@pytest.fixture
def payments(services):
    return services["payments"]


@pytest.fixture
def booking_request():
    """Factory for BookingCreate with one oil change at 10:00 on bay1."""

    def _make(start: time = time(10, 0), **overrides) -> BookingCreate:
        data = {
            "customer_id": TEST_CUSTOMER_ID,
            "vehicle": VehicleSnapshot(
                plate_number="ABC 1234", make="Toyota", model="Camry", year=2020,
                mileage=45000, vehicle_type=VehicleType.SEDAN,
            ),
            "line_items": [LineItemRequest(service_id=OIL_CHANGE_ID, quantity=1)],
            "scheduled_date": TEST_DAY,
            "start_time": start,
            "resource": TEST_RESOURCE,
        }
        data.update(overrides)
        return BookingCreate(**data)

    return _make


@pytest.fixture
def make_booking():
    """Factory for stored-shape Booking objects that bypass the service."""

    def _make(
        start: time = time(10, 0),
        end: time = time(11, 0),
        status: BookingStatus = BookingStatus.PENDING,
        total: str = "172.50",
        **overrides,
    ) -> Booking:
        now = now_utc()
        data = {
            "id": uuid4(),
            "booking_number": format_booking_number(TEST_DAY, 1),
            "customer_id": TEST_CUSTOMER_ID,
            "vehicle": VehicleSnapshot(plate_number="ABC 1234", vehicle_type=VehicleType.SEDAN),
            "line_items": [],
            "interval": TimeInterval(resource=TEST_RESOURCE, day=TEST_DAY, start=start, end=end),
            "estimated_duration_minutes": 60,
            "status": status,
            "pricing": Pricing(
                subtotal=Decimal("150.00"), tax_rate=Decimal("0.15"), tax_amount=Decimal("22.50"),
                discount_amount=Decimal("0.00"), total_amount=Decimal(total), currency="SAR",
            ),
            "status_history": [creation_entry("system", now)],
            "created_at": now,
            "updated_at": now,
        }
        data.update(overrides)
        return Booking(**data)

    return _make


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def db():
    """Session-scoped PostgresClient; skips when Vault is not configured."""
    if not os.getenv("VAULT_ADDR"):
        pytest.skip("VAULT_ADDR not set; database tests need Vault and PostgreSQL")

    from clients.postgres_client import PostgresClient
    from clients.vault_client import get_database_url

    client = PostgresClient(get_database_url())
    yield client
    client.close()


@pytest.fixture
def clean_db(db):
    """Empty scheduling tables before a database test."""
    db.execute("TRUNCATE audit_log, bookings, booking_sequences, customers, services CASCADE")
    yield db


# =============================================================================
# VALKEY FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def valkey():
    """Session-scoped ValkeyClient; skips when Vault is not configured."""
    if not os.getenv("VAULT_ADDR"):
        pytest.skip("VAULT_ADDR not set; Valkey tests need Vault and Valkey")

    from clients.valkey_client import ValkeyClient
    from clients.vault_client import get_valkey_url

    client = ValkeyClient(get_valkey_url())
    yield client
    client.close()

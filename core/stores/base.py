"""
Persistence boundaries used by the scheduling core.

BookingStore writers are atomic: insert/update/replace either commit with
no active overlap on the target resource/day, or raise SlotUnavailable and
change nothing. Failures of the backing system surface as StorageUnavailable.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from pydantic import BaseModel

from core.models import Booking, Customer, ServiceCategory, ServiceDefinition


class AuditEntry(BaseModel):
    """Append-only record of one entity mutation."""

    id: UUID
    actor: str
    entity_type: str
    entity_id: UUID
    action: str
    changes: dict[str, Any]
    created_at: datetime


class CatalogStore(Protocol):
    def find_service_by_id(self, service_id: UUID) -> ServiceDefinition | None: ...

    def list_active_services(
        self, category: ServiceCategory | None = None
    ) -> list[ServiceDefinition]: ...


class CustomerStore(Protocol):
    def find_customer_by_id(self, customer_id: UUID) -> Customer | None: ...

    def record_booking(self, customer_id: UUID, at: datetime) -> None: ...

    def record_spend(self, customer_id: UUID, amount: Decimal, at: datetime) -> None: ...


class BookingStore(Protocol):
    def get(self, booking_id: UUID) -> Booking | None: ...

    def find_by_idempotency_key(self, key: str) -> Booking | None: ...

    def find_by_transaction_id(self, transaction_id: str) -> Booking | None: ...  # skips rescheduled originals

    def list_active_for_day(self, resource: str, day: date) -> list[Booking]: ...

    def list_for_customer(self, customer_id: UUID, limit: int = 50) -> list[Booking]: ...

    def list_in_range(self, start: date, end: date) -> list[Booking]: ...

    def next_booking_number(self, day: date) -> str: ...

    def insert(self, booking: Booking) -> Booking: ...

    def update(self, booking: Booking, check_conflict: bool = False) -> Booking: ...

    def replace(self, old: Booking, new: Booking) -> tuple[Booking, Booking]: ...

    def append_audit(self, entry: AuditEntry) -> None: ...

    def list_audit(self, entity_type: str, entity_id: UUID) -> list[AuditEntry]: ...


def format_booking_number(day: date, sequence: int) -> str:
    """BK + YYYYMMDD + 4-digit per-day sequence."""
    return f"BK{day.strftime('%Y%m%d')}{sequence:04d}"


def first_overlap(candidates: list[Booking], booking: Booking) -> Booking | None:
    """First active booking in candidates overlapping booking's interval (itself excluded)."""
    for other in candidates:
        if other.id == booking.id or not other.is_active:
            continue
        if other.interval.overlaps(booking.interval):
            return other
    return None

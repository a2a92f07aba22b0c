"""
In-process stores.

Every store keeps its records behind one re-entrant lock and hands out deep
copies, so a reader never observes a booking that is half written. The
booking store's overlap check and write happen under the same lock, which
makes insert/update/replace atomic within a process.
"""

import logging
import threading
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from core.errors import CustomerNotFound, SlotUnavailable
from core.models import Booking, BookingStatus, Customer, ServiceCategory, ServiceDefinition
from core.stores.base import AuditEntry, first_overlap, format_booking_number

logger = logging.getLogger(__name__)


class InMemoryCatalogStore:
    """Catalog held in a dict; seeded by the caller."""

    def __init__(self, services: list[ServiceDefinition] | None = None):
        self._lock = threading.RLock()
        self._services: dict[UUID, ServiceDefinition] = {}
        for service in services or []:
            self.add(service)

    def add(self, service: ServiceDefinition) -> None:
        with self._lock:
            self._services[service.id] = service.model_copy(deep=True)

    def find_service_by_id(self, service_id: UUID) -> ServiceDefinition | None:
        with self._lock:
            service = self._services.get(service_id)
            return service.model_copy(deep=True) if service else None

    def list_active_services(self, category: ServiceCategory | None = None) -> list[ServiceDefinition]:
        with self._lock:
            return [
                s.model_copy(deep=True)
                for s in self._services.values()
                if s.is_active and (category is None or s.category == category)
            ]


class InMemoryCustomerStore:
    """Customers held in a dict; seeded by the caller."""

    def __init__(self, customers: list[Customer] | None = None):
        self._lock = threading.RLock()
        self._customers: dict[UUID, Customer] = {}
        for customer in customers or []:
            self.add(customer)

    def add(self, customer: Customer) -> None:
        with self._lock:
            self._customers[customer.id] = customer.model_copy(deep=True)

    def find_customer_by_id(self, customer_id: UUID) -> Customer | None:
        with self._lock:
            customer = self._customers.get(customer_id)
            return customer.model_copy(deep=True) if customer else None

    def record_booking(self, customer_id: UUID, at: datetime) -> None:
        with self._lock:
            current = self._require(customer_id)
            self._customers[customer_id] = current.model_copy(update={
                "total_bookings": current.total_bookings + 1,
                "last_visit_at": at,
                "updated_at": at,
            })

    def record_spend(self, customer_id: UUID, amount: Decimal, at: datetime) -> None:
        with self._lock:
            current = self._require(customer_id)
            self._customers[customer_id] = current.model_copy(update={
                "total_spent": current.total_spent + amount,
                "updated_at": at,
            })

    def _require(self, customer_id: UUID) -> Customer:
        customer = self._customers.get(customer_id)
        if customer is None:
            raise CustomerNotFound(customer_id, field="customer_id")
        return customer


class InMemoryBookingStore:
    """Bookings, per-day sequences, and the audit log held in process memory."""

    def __init__(self):
        self._lock = threading.RLock()
        self._bookings: dict[UUID, Booking] = {}
        self._sequences: dict[date, int] = defaultdict(int)
        self._audit: list[AuditEntry] = []

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, booking_id: UUID) -> Booking | None:
        with self._lock:
            booking = self._bookings.get(booking_id)
            return booking.model_copy(deep=True) if booking else None

    def find_by_idempotency_key(self, key: str) -> Booking | None:
        with self._lock:
            return self._first(lambda b: b.idempotency_key == key)

    def find_by_transaction_id(self, transaction_id: str) -> Booking | None:
        with self._lock:
            return self._first(
                lambda b: b.payment.transaction_id == transaction_id and b.status != BookingStatus.RESCHEDULED
            )

    def list_active_for_day(self, resource: str, day: date) -> list[Booking]:
        with self._lock:
            found = [
                b.model_copy(deep=True) for b in self._bookings.values()
                if b.is_active and b.interval.resource == resource and b.interval.day == day
            ]
        return sorted(found, key=lambda b: b.interval.start)

    def list_for_customer(self, customer_id: UUID, limit: int = 50) -> list[Booking]:
        with self._lock:
            found = [b.model_copy(deep=True) for b in self._bookings.values() if b.customer_id == customer_id]
        found.sort(key=lambda b: (b.interval.day, b.interval.start), reverse=True)
        return found[:limit]

    def list_in_range(self, start: date, end: date) -> list[Booking]:
        with self._lock:
            found = [
                b.model_copy(deep=True) for b in self._bookings.values()
                if start <= b.interval.day <= end
            ]
        return sorted(found, key=lambda b: (b.interval.day, b.interval.start))

    def next_booking_number(self, day: date) -> str:
        with self._lock:
            self._sequences[day] += 1
            return format_booking_number(day, self._sequences[day])

    # -------------------------------------------------------------------------
    # Atomic writes
    # -------------------------------------------------------------------------

    def insert(self, booking: Booking) -> Booking:
        with self._lock:
            if booking.is_active:
                self._ensure_free(booking)
            self._bookings[booking.id] = booking.model_copy(deep=True)
            return booking.model_copy(deep=True)

    def update(self, booking: Booking, check_conflict: bool = False) -> Booking:
        with self._lock:
            if booking.id not in self._bookings:
                raise KeyError(f"Booking {booking.id} does not exist")
            if check_conflict and booking.is_active:
                self._ensure_free(booking)
            self._bookings[booking.id] = booking.model_copy(deep=True)
            return booking.model_copy(deep=True)

    def replace(self, old: Booking, new: Booking) -> tuple[Booking, Booking]:
        with self._lock:
            if old.id not in self._bookings:
                raise KeyError(f"Booking {old.id} does not exist")
            # old leaves the active set in the same commit, so it cannot block new
            conflict = first_overlap(
                [b for b in self._bookings.values() if b.id != old.id], new
            )
            if conflict is not None:
                raise SlotUnavailable(
                    f"Slot overlaps booking {conflict.booking_number}",
                    conflicting_booking_id=conflict.id,
                )
            self._bookings[old.id] = old.model_copy(deep=True)
            self._bookings[new.id] = new.model_copy(deep=True)
            return old.model_copy(deep=True), new.model_copy(deep=True)

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    def append_audit(self, entry: AuditEntry) -> None:
        with self._lock:
            self._audit.append(entry.model_copy(deep=True))

    def list_audit(self, entity_type: str, entity_id: UUID) -> list[AuditEntry]:
        with self._lock:
            entries = [
                e.model_copy(deep=True) for e in self._audit
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        return list(reversed(entries))

    # -------------------------------------------------------------------------
    # Helpers (caller holds the lock)
    # -------------------------------------------------------------------------

    def _first(self, predicate) -> Booking | None:
        for booking in self._bookings.values():
            if predicate(booking):
                return booking.model_copy(deep=True)
        return None

    def _ensure_free(self, booking: Booking) -> None:
        conflict = first_overlap(list(self._bookings.values()), booking)
        if conflict is not None:
            raise SlotUnavailable(
                f"Slot overlaps booking {conflict.booking_number}",
                conflicting_booking_id=conflict.id,
            )

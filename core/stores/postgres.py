"""
PostgreSQL stores.

Booking writes take a transaction-scoped advisory lock per (resource, day),
re-check overlap with a range query, then write. The bookings_no_overlap
exclusion constraint backs this up for any writer that bypasses the store.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterator
from uuid import UUID

import psycopg2
import psycopg2.errors
import psycopg2.pool
from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from core.errors import CustomerNotFound, SlotUnavailable, StorageUnavailable
from core.models import (
    ACTIVE_STATUSES, Booking, Customer, ServiceCategory, ServiceDefinition,
)
from core.stores.base import AuditEntry, format_booking_number

logger = logging.getLogger(__name__)

_ACTIVE = [s.value for s in ACTIVE_STATUSES]

_BOOKING_COLUMNS = (
    "id", "booking_number", "customer_id", "resource", "scheduled_date", "start_time", "end_time",
    "estimated_duration_minutes", "status", "priority", "source", "contact_preference",
    "vehicle", "line_items", "pricing", "payment", "status_history",
    "customer_notes", "special_requests", "idempotency_key", "rescheduled_from", "rescheduled_to",
    "completed_at", "cancelled_at", "cancelled_by", "cancellation_reason", "created_at", "updated_at",
)
_JSON_COLUMNS = {"vehicle", "line_items", "pricing", "payment", "status_history"}

_INSERT_BOOKING = (
    f"INSERT INTO bookings ({', '.join(_BOOKING_COLUMNS)}) "
    f"VALUES ({', '.join(['%s'] * len(_BOOKING_COLUMNS))}) RETURNING *"
)
_UPDATE_BOOKING = (
    f"UPDATE bookings SET {', '.join(f'{c} = %s' for c in _BOOKING_COLUMNS[1:])} "
    f"WHERE id = %s RETURNING *"
)
_OVERLAP = """
    SELECT id, booking_number FROM bookings
    WHERE resource = %s AND scheduled_date = %s
      AND status = ANY(%s) AND id <> %s
      AND start_time < %s AND %s < end_time
    LIMIT 1
"""


@contextmanager
def storage_errors() -> Iterator[None]:
    """Translate driver failures into scheduling errors."""
    try:
        yield
    except psycopg2.errors.ExclusionViolation as e:
        raise SlotUnavailable(f"Slot is already booked: {e.diag.message_primary}")
    except psycopg2.errors.UniqueViolation as e:
        raise StorageUnavailable(f"Concurrent write conflict, retry: {e.diag.message_primary}")
    except (psycopg2.OperationalError, psycopg2.pool.PoolError) as e:
        logger.error(f"Database unavailable: {e}")
        raise StorageUnavailable(f"Database unavailable: {e}")


def _booking_from_row(row: Dict[str, Any]) -> Booking:
    data = dict(row)
    data["interval"] = {
        "resource": data.pop("resource"),
        "day": data.pop("scheduled_date"),
        "start": data.pop("start_time"),
        "end": data.pop("end_time"),
    }
    return Booking.model_validate(data)


def _booking_params(booking: Booking) -> tuple:
    data = booking.model_dump(mode="json")
    interval = data.pop("interval")
    data.update(
        resource=interval["resource"],
        scheduled_date=booking.interval.day,
        start_time=booking.interval.start,
        end_time=booking.interval.end,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
        completed_at=booking.completed_at,
        cancelled_at=booking.cancelled_at,
    )
    return tuple(
        Json(data[c]) if c in _JSON_COLUMNS else data[c]
        for c in _BOOKING_COLUMNS
    )


class PostgresCatalogStore:
    """Read-only catalog over the services table."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def find_service_by_id(self, service_id: UUID) -> ServiceDefinition | None:
        with storage_errors():
            row = self.postgres.execute_single("SELECT * FROM services WHERE id = %s", (service_id,))
        return ServiceDefinition.model_validate(row) if row else None

    def list_active_services(self, category: ServiceCategory | None = None) -> list[ServiceDefinition]:
        query = "SELECT * FROM services WHERE is_active"
        params: tuple = ()
        if category is not None:
            query += " AND category = %s"
            params = (category.value,)

        with storage_errors():
            rows = self.postgres.execute(query + " ORDER BY name", params)
        return [ServiceDefinition.model_validate(row) for row in rows]


class PostgresCustomerStore:
    """Customer lookups plus visit/spend counters."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def find_customer_by_id(self, customer_id: UUID) -> Customer | None:
        with storage_errors():
            row = self.postgres.execute_single("SELECT * FROM customers WHERE id = %s", (customer_id,))
        return Customer.model_validate(row) if row else None

    def record_booking(self, customer_id: UUID, at: datetime) -> None:
        with storage_errors():
            found = self.postgres.execute_scalar(
                """
                UPDATE customers
                SET total_bookings = total_bookings + 1, last_visit_at = %s, updated_at = %s
                WHERE id = %s
                RETURNING id
                """,
                (at, at, customer_id),
            )
        if found is None:
            raise CustomerNotFound(customer_id, field="customer_id")

    def record_spend(self, customer_id: UUID, amount: Decimal, at: datetime) -> None:
        with storage_errors():
            found = self.postgres.execute_scalar(
                """
                UPDATE customers
                SET total_spent = total_spent + %s, updated_at = %s
                WHERE id = %s
                RETURNING id
                """,
                (amount, at, customer_id),
            )
        if found is None:
            raise CustomerNotFound(customer_id, field="customer_id")


class PostgresBookingStore:
    """Bookings, per-day sequences, and the audit log in PostgreSQL."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _one(self, query: str, params: tuple) -> Booking | None:
        with storage_errors():
            row = self.postgres.execute_single(query, params)
        return _booking_from_row(row) if row else None

    def _many(self, query: str, params: tuple) -> list[Booking]:
        with storage_errors():
            rows = self.postgres.execute(query, params)
        return [_booking_from_row(row) for row in rows]

    def get(self, booking_id: UUID) -> Booking | None:
        return self._one("SELECT * FROM bookings WHERE id = %s", (booking_id,))

    def find_by_idempotency_key(self, key: str) -> Booking | None:
        return self._one("SELECT * FROM bookings WHERE idempotency_key = %s", (key,))

    def find_by_transaction_id(self, transaction_id: str) -> Booking | None:
        return self._one(
            "SELECT * FROM bookings WHERE payment ->> 'transaction_id' = %s AND status <> 'rescheduled'",
            (transaction_id,),
        )

    def list_active_for_day(self, resource: str, day: date) -> list[Booking]:
        return self._many(
            """
            SELECT * FROM bookings
            WHERE resource = %s AND scheduled_date = %s AND status = ANY(%s)
            ORDER BY start_time
            """,
            (resource, day, _ACTIVE),
        )

    def list_for_customer(self, customer_id: UUID, limit: int = 50) -> list[Booking]:
        return self._many(
            """
            SELECT * FROM bookings WHERE customer_id = %s
            ORDER BY scheduled_date DESC, start_time DESC
            LIMIT %s
            """,
            (customer_id, limit),
        )

    def list_in_range(self, start: date, end: date) -> list[Booking]:
        return self._many(
            """
            SELECT * FROM bookings WHERE scheduled_date BETWEEN %s AND %s
            ORDER BY scheduled_date, start_time
            """,
            (start, end),
        )

    def next_booking_number(self, day: date) -> str:
        with storage_errors():
            sequence = self.postgres.execute_scalar(
                """
                INSERT INTO booking_sequences (day, last_value) VALUES (%s, 1)
                ON CONFLICT (day) DO UPDATE SET last_value = booking_sequences.last_value + 1
                RETURNING last_value
                """,
                (day,),
            )
        return format_booking_number(day, sequence)

    # -------------------------------------------------------------------------
    # Atomic writes
    # -------------------------------------------------------------------------

    def _lock_day(self, cur, booking: Booking) -> None:
        key = f"{booking.interval.resource}:{booking.interval.day.isoformat()}"
        cur.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (key,))

    def _ensure_free(self, cur, booking: Booking, exclude_id: UUID) -> None:
        interval = booking.interval
        cur.execute(_OVERLAP, self.postgres.convert_params((
            interval.resource, interval.day, _ACTIVE, exclude_id, interval.end, interval.start,
        )))
        conflict = cur.fetchone()
        if conflict is not None:
            raise SlotUnavailable(
                f"Slot overlaps booking {conflict['booking_number']}",
                conflicting_booking_id=UUID(str(conflict["id"])),
            )

    def _write(self, cur, query: str, params: tuple) -> Booking:
        cur.execute(query, self.postgres.convert_params(params))
        row = cur.fetchone()
        if row is None:
            raise KeyError("Booking does not exist")
        return _booking_from_row(row)

    def insert(self, booking: Booking) -> Booking:
        with storage_errors(), self.postgres.transaction() as cur:
            if booking.is_active:
                self._lock_day(cur, booking)
                self._ensure_free(cur, booking, booking.id)
            return self._write(cur, _INSERT_BOOKING, _booking_params(booking))

    def update(self, booking: Booking, check_conflict: bool = False) -> Booking:
        params = _booking_params(booking)
        with storage_errors(), self.postgres.transaction() as cur:
            if check_conflict and booking.is_active:
                self._lock_day(cur, booking)
                self._ensure_free(cur, booking, booking.id)
            return self._write(cur, _UPDATE_BOOKING, params[1:] + (booking.id,))

    def replace(self, old: Booking, new: Booking) -> tuple[Booking, Booking]:
        with storage_errors(), self.postgres.transaction() as cur:
            for booking in sorted((old, new), key=lambda b: (b.interval.resource, b.interval.day)):
                self._lock_day(cur, booking)
            # old leaves the active set in the same commit, so it cannot block new
            self._ensure_free(cur, new, old.id)
            saved_old = self._write(cur, _UPDATE_BOOKING, _booking_params(old)[1:] + (old.id,))
            saved_new = self._write(cur, _INSERT_BOOKING, _booking_params(new))
            return saved_old, saved_new

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    def append_audit(self, entry: AuditEntry) -> None:
        with storage_errors():
            self.postgres.execute(
                """
                INSERT INTO audit_log (id, actor, entity_type, entity_id, action, changes, created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    entry.id, entry.actor, entry.entity_type, entry.entity_id,
                    entry.action, Json(entry.changes), entry.created_at,
                ),
            )

    def list_audit(self, entity_type: str, entity_id: UUID) -> list[AuditEntry]:
        with storage_errors():
            rows = self.postgres.execute(
                """
                SELECT * FROM audit_log
                WHERE entity_type = %s AND entity_id = %s
                ORDER BY created_at DESC
                """,
                (entity_type, entity_id),
            )
        return [AuditEntry.model_validate(row) for row in rows]

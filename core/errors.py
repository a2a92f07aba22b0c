"""
Typed exceptions for scheduling failures.

Every error carries a machine-readable code plus the offending field or
entity id when one is known, so the HTTP layer can render a precise message
without parsing exception text.
"""

from typing import Any


class SchedulingError(Exception):
    """Base class for all scheduling-core errors."""

    code = "SCHEDULING_ERROR"

    def __init__(self, message: str, *, field: str | None = None, entity_id: Any = None):
        self.message = message
        self.field = field
        self.entity_id = entity_id
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Structured form for logs and API payloads."""
        data: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.field is not None:
            data["field"] = self.field
        if self.entity_id is not None:
            data["entity_id"] = str(self.entity_id)
        return data


class NotFoundError(SchedulingError):
    """Referenced entity does not exist. Not retried."""

    code = "NOT_FOUND"
    entity_label = "Entity"

    def __init__(self, entity_id: Any, field: str | None = None):
        super().__init__(
            f"{self.entity_label} {entity_id} not found",
            field=field,
            entity_id=entity_id,
        )


class CustomerNotFound(NotFoundError):
    entity_label = "Customer"


class ServiceNotFound(NotFoundError):
    entity_label = "Service"


class BookingNotFound(NotFoundError):
    entity_label = "Booking"


class SlotUnavailable(SchedulingError):
    """
    Requested interval overlaps an active booking on the same resource/day.

    Caller should re-query availability and pick a different slot.
    """

    code = "SLOT_UNAVAILABLE"

    def __init__(self, message: str, *, conflicting_booking_id: Any = None):
        super().__init__(message, field="interval", entity_id=conflicting_booking_id)
        self.conflicting_booking_id = conflicting_booking_id


class ServiceIneligible(SchedulingError):
    """Service cannot be booked for this vehicle (type, currency, or inactive)."""

    code = "SERVICE_INELIGIBLE"


class BookingNotModifiable(SchedulingError):
    """Mutation attempted on a booking outside {pending, confirmed}."""

    code = "BOOKING_NOT_MODIFIABLE"


class InvalidTransition(SchedulingError):
    """Status change violates the booking state machine."""

    code = "INVALID_STATUS_TRANSITION"


class InvalidInterval(SchedulingError):
    """Malformed time range or one that falls outside business hours."""

    code = "INVALID_INTERVAL"


class PaymentError(SchedulingError):
    """Payment could not be started, matched, or refunded."""

    code = "PAYMENT_ERROR"


class StorageUnavailable(SchedulingError):
    """
    Persistence or lock boundary failed.

    Transient. Only safe to retry booking creation with an idempotency key.
    """

    code = "SERVICE_UNAVAILABLE"

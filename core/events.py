"""
Domain events for the scheduling core.

Immutable event objects that represent committed booking state changes.
A service publishes what happened, and handlers react without the
publisher knowing who's listening.

Event Categories:
- BookingEvent: Booking lifecycle (create, reschedule, status change, complete, cancel)
- PaymentEvent: Payment results (received)

Events carry the full booking so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.clock import now_utc


@dataclass(frozen=True, kw_only=True)
class SchedulingEvent:
    """Base class for all scheduling domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


# =============================================================================
# BOOKING EVENTS
# =============================================================================


@dataclass(frozen=True)
class BookingEvent(SchedulingEvent):
    """Events related to booking lifecycle."""
    booking: Any = None  # Booking; Any avoids importing models into events


@dataclass(frozen=True)
class BookingCreated(BookingEvent):
    """A new booking was committed in PENDING status."""

    @classmethod
    def create(cls, booking: Any) -> "BookingCreated":
        return cls(booking=booking)


@dataclass(frozen=True)
class BookingRescheduled(BookingEvent):
    """A booking was closed as rescheduled; `replacement` holds the new booking."""
    replacement: Any = None

    @classmethod
    def create(cls, booking: Any, replacement: Any) -> "BookingRescheduled":
        return cls(booking=booking, replacement=replacement)


@dataclass(frozen=True)
class BookingStatusChanged(BookingEvent):
    """Any successful status transition."""
    previous_status: str | None = None

    @classmethod
    def create(cls, booking: Any, previous_status: str) -> "BookingStatusChanged":
        return cls(booking=booking, previous_status=previous_status)


@dataclass(frozen=True)
class BookingCompleted(BookingEvent):
    """Booking reached COMPLETED; payment and loyalty settlement may run."""

    @classmethod
    def create(cls, booking: Any) -> "BookingCompleted":
        return cls(booking=booking)


@dataclass(frozen=True)
class BookingCancelled(BookingEvent):
    """Booking was cancelled or marked no-show; its slot is free."""

    @classmethod
    def create(cls, booking: Any) -> "BookingCancelled":
        return cls(booking=booking)


# =============================================================================
# PAYMENT EVENTS
# =============================================================================


@dataclass(frozen=True)
class PaymentEvent(SchedulingEvent):
    """Events related to booking payments."""
    booking: Any = None


@dataclass(frozen=True)
class PaymentReceived(PaymentEvent):
    """Gateway reported the booking's transaction as paid."""

    @classmethod
    def create(cls, booking: Any) -> "PaymentReceived":
        return cls(booking=booking)

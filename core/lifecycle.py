"""
Booking status state machine.

pending -> confirmed -> in_progress -> completed is the forward path. Any
active booking may be cancelled or marked no-show. completed, cancelled,
no_show, and rescheduled are terminal. rescheduled is only reachable through
a reschedule, never through a plain status change.

All functions return a new Booking; the input is never mutated.
"""

from datetime import datetime
from uuid import UUID

from core.errors import BookingNotModifiable, InvalidTransition
from core.models import Booking, BookingStatus, Payment, StatusChange

CREATED_REASON = "created"

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({
        BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW,
    }),
    BookingStatus.CONFIRMED: frozenset({
        BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED, BookingStatus.NO_SHOW,
    }),
    BookingStatus.IN_PROGRESS: frozenset({
        BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW,
    }),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
    BookingStatus.RESCHEDULED: frozenset(),
}


def can_transition(current: BookingStatus, new: BookingStatus) -> bool:
    return new in ALLOWED_TRANSITIONS[current]


def creation_entry(actor: str, at: datetime) -> StatusChange:
    """Synthetic first audit entry for a new booking."""
    return StatusChange(
        previous_status=None,
        new_status=BookingStatus.PENDING,
        changed_at=at,
        actor=actor,
        reason=CREATED_REASON,
    )


def ensure_modifiable(booking: Booking) -> None:
    """
    Raises:
        BookingNotModifiable: If the booking is not pending or confirmed
    """
    if not booking.is_modifiable:
        raise BookingNotModifiable(
            f"Booking {booking.booking_number} cannot be modified in status {booking.status.value}",
            field="status",
            entity_id=booking.id,
        )


def apply_transition(
    booking: Booking,
    new_status: BookingStatus,
    actor: str,
    reason: str | None,
    at: datetime,
) -> Booking:
    """
    Move a booking to a new status and append exactly one audit entry.

    Completion stamps completed_at. Cancellation and no-show stamp the
    cancellation fields; both leave the active set, freeing the slot.

    Raises:
        InvalidTransition: If the state machine forbids the change
    """
    if not can_transition(booking.status, new_status):
        raise InvalidTransition(
            f"Cannot change booking {booking.booking_number} from "
            f"{booking.status.value} to {new_status.value}",
            field="status",
            entity_id=booking.id,
        )

    update: dict = {
        "status": new_status,
        "status_history": [*booking.status_history, StatusChange(
            previous_status=booking.status,
            new_status=new_status,
            changed_at=at,
            actor=actor,
            reason=reason,
        )],
        "updated_at": at,
    }

    if new_status == BookingStatus.COMPLETED:
        update["completed_at"] = at
    elif new_status in (BookingStatus.CANCELLED, BookingStatus.NO_SHOW):
        update["cancelled_at"] = at
        update["cancelled_by"] = actor
        update["cancellation_reason"] = reason

    return booking.model_copy(update=update)


def mark_rescheduled(
    booking: Booking,
    replacement_id: UUID,
    actor: str,
    reason: str | None,
    at: datetime,
) -> Booking:
    """
    Close a modifiable booking as rescheduled, pointing at its replacement.

    The payment record moves to the replacement; the original keeps an
    empty one.

    Raises:
        BookingNotModifiable: If the booking is not pending or confirmed
    """
    ensure_modifiable(booking)

    return booking.model_copy(update={
        "status": BookingStatus.RESCHEDULED,
        "rescheduled_to": replacement_id,
        "payment": Payment(),
        "status_history": [*booking.status_history, StatusChange(
            previous_status=booking.status,
            new_status=BookingStatus.RESCHEDULED,
            changed_at=at,
            actor=actor,
            reason=reason,
        )],
        "updated_at": at,
    })

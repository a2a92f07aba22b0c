"""
Handler for PaymentReceived events.

A paid booking still in PENDING is confirmed on behalf of the system.
"""

import logging
from typing import Callable

from core.events import PaymentReceived
from core.models import BookingStatus
from utils.actor_context import SYSTEM_ACTOR

logger = logging.getLogger(__name__)

PAYMENT_CONFIRMED_REASON = "Payment confirmed"


def handle_payment_received(scheduling_service) -> Callable:
    """
    Factory that returns a PaymentReceived handler.

    Args:
        scheduling_service: SchedulingService instance

    Returns:
        Handler callable that confirms pending bookings once paid
    """

    def handler(event: PaymentReceived):
        booking = scheduling_service.get_booking(event.booking.id)
        if booking.status != BookingStatus.PENDING:
            logger.info(
                "Payment received for booking %s in status %s, leaving as is",
                booking.booking_number, booking.status.value,
            )
            return

        scheduling_service.transition_status(
            booking.id,
            BookingStatus.CONFIRMED,
            actor=SYSTEM_ACTOR,
            reason=PAYMENT_CONFIRMED_REASON,
        )

    return handler

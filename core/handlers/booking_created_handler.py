"""
Handler for BookingCreated events.

On booking creation, bumps the customer's booking counter and last visit.
"""

import logging
from typing import Callable

from core.events import BookingCreated

logger = logging.getLogger(__name__)


def handle_booking_created(customers) -> Callable:
    """
    Factory that returns a BookingCreated handler.

    Args:
        customers: CustomerStore instance

    Returns:
        Handler callable that records the booking against the customer
    """

    def handler(event: BookingCreated):
        booking = event.booking
        customers.record_booking(booking.customer_id, event.occurred_at)
        logger.debug("Recorded booking %s for customer %s", booking.booking_number, booking.customer_id)

    return handler

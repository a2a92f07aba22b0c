"""
Handler for BookingCompleted events.

On completion, adds the booking total to the customer's lifetime spend.
"""

import logging
from typing import Callable

from core.events import BookingCompleted

logger = logging.getLogger(__name__)


def handle_booking_completed(customers) -> Callable:
    """
    Factory that returns a BookingCompleted handler.

    Args:
        customers: CustomerStore instance

    Returns:
        Handler callable that records the spend against the customer
    """

    def handler(event: BookingCompleted):
        booking = event.booking
        at = booking.completed_at or event.occurred_at
        customers.record_spend(booking.customer_id, booking.pricing.total_amount, at)

    return handler

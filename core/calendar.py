"""
Slot calendar for one resource/day at a time.

Answers conflict checks and availability queries from the active bookings
the booking store holds right now. Nothing is cached: each call reads a
fresh snapshot, so results always reflect committed state.
"""

import logging
from datetime import date, time
from uuid import UUID

from core.config import SchedulingConfig
from core.errors import InvalidInterval
from core.models import Booking, TimeInterval
from core.stores.base import BookingStore
from utils.clock import minutes_since_midnight, time_from_minutes

logger = logging.getLogger(__name__)


def overlapping_booking(
    bookings: list[Booking],
    interval: TimeInterval,
    exclude_booking_id: UUID | None = None,
) -> Booking | None:
    """First active booking whose interval overlaps the given one."""
    for booking in bookings:
        if exclude_booking_id is not None and booking.id == exclude_booking_id:
            continue
        if booking.is_active and booking.interval.overlaps(interval):
            return booking
    return None


class SlotCalendar:
    """Conflict checks and availability over committed bookings."""

    def __init__(self, store: BookingStore, config: SchedulingConfig):
        self.store = store
        self.config = config

    def validate_interval(
        self,
        interval: TimeInterval,
        business_hours: tuple[time, time] | None = None,
    ) -> None:
        """
        Ensure an interval lies inside business hours.

        Raises:
            InvalidInterval: If the interval starts early or ends late
        """
        open_at, close_at = business_hours or (
            self.config.business_hours_start, self.config.business_hours_end
        )
        if interval.start < open_at or interval.end > close_at:
            raise InvalidInterval(
                f"Interval {interval.start:%H:%M}-{interval.end:%H:%M} is outside "
                f"business hours {open_at:%H:%M}-{close_at:%H:%M}",
                field="interval",
            )

    def find_conflict(
        self,
        interval: TimeInterval,
        exclude_booking_id: UUID | None = None,
    ) -> Booking | None:
        """
        Active booking overlapping the interval on its resource/day, if any.

        Args:
            interval: Candidate interval
            exclude_booking_id: Booking to ignore (its own prior slot on update)
        """
        bookings = self.store.list_active_for_day(interval.resource, interval.day)
        return overlapping_booking(bookings, interval, exclude_booking_id)

    def has_conflict(
        self,
        interval: TimeInterval,
        exclude_booking_id: UUID | None = None,
    ) -> bool:
        """Whether the interval overlaps any active booking on its resource/day."""
        return self.find_conflict(interval, exclude_booking_id) is not None

    def available_slots(
        self,
        resource: str,
        day: date,
        duration_minutes: int,
        granularity_minutes: int | None = None,
        business_hours: tuple[time, time] | None = None,
    ) -> list[TimeInterval]:
        """
        Enumerate free intervals of a fixed duration.

        Candidates start at business-hours open and step by the granularity.
        Candidates ending after close, or overlapping an active booking, are
        dropped. A duration longer than the whole business day yields [].

        Returns:
            Free intervals ordered by start time

        Raises:
            InvalidInterval: If duration or granularity is not positive
        """
        if duration_minutes <= 0:
            raise InvalidInterval("Duration must be positive", field="duration_minutes")

        step = self.config.slot_granularity_minutes if granularity_minutes is None else granularity_minutes
        if step <= 0:
            raise InvalidInterval("Granularity must be positive", field="granularity_minutes")

        open_at, close_at = business_hours or (
            self.config.business_hours_start, self.config.business_hours_end
        )
        open_minute = minutes_since_midnight(open_at)
        close_minute = minutes_since_midnight(close_at)

        if duration_minutes > close_minute - open_minute:
            return []

        # One snapshot for the whole scan
        bookings = self.store.list_active_for_day(resource, day)

        slots: list[TimeInterval] = []
        for start_minute in range(open_minute, close_minute, step):
            end_minute = start_minute + duration_minutes
            if end_minute > close_minute:
                break

            candidate = TimeInterval(
                resource=resource,
                day=day,
                start=time_from_minutes(start_minute),
                end=time_from_minutes(end_minute),
            )
            if overlapping_booking(bookings, candidate) is None:
                slots.append(candidate)

        return slots

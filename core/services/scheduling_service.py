"""
Scheduling service: the single entry point for booking mutations.

Handles create, update, reschedule, status transitions, availability, and
dashboard reads. Every mutation validates everything it can before taking
the resource/day lock, re-reads the booking once the lock is held, and
commits through the store's atomic write. Nothing is persisted on failure.
"""

import logging
from collections import Counter, defaultdict
from datetime import date, time
from decimal import Decimal
from uuid import UUID, uuid4

from core.audit import AuditLogger, AuditAction, compute_changes
from core.calendar import SlotCalendar
from core.config import SchedulingConfig
from core.errors import BookingNotFound, CustomerNotFound, InvalidInterval, SlotUnavailable
from core.event_bus import EventBus
from core.events import (
    BookingCancelled, BookingCompleted, BookingCreated, BookingRescheduled, BookingStatusChanged,
)
from core.lifecycle import apply_transition, creation_entry, ensure_modifiable, mark_rescheduled
from core.locks import SlotKey, SlotLocks, hold_all
from core.models import (
    Booking, BookingCreate, BookingStatus, BookingUpdate, DailyStat, DashboardSummary,
    LineItemRequest, PaymentStatus, TimeInterval, VehicleType,
)
from core.pricing import PricingContext, PricingEngine, Quote
from core.stores.base import BookingStore, CustomerStore
from utils.actor_context import get_current_actor
from utils.clock import now_utc, today_utc

logger = logging.getLogger(__name__)

_ZERO = Decimal("0.00")

# Fields copied straight from BookingUpdate onto the booking
_PLAIN_UPDATE_FIELDS = {"priority", "contact_preference", "customer_notes", "special_requests"}


def _slot_key(interval: TimeInterval) -> SlotKey:
    return (interval.resource, interval.day)


def _requests_from(booking: Booking) -> list[LineItemRequest]:
    """Rebuild line item requests from a booking's snapshot for re-pricing."""
    return [
        LineItemRequest(service_id=li.service_id, quantity=li.quantity, notes=li.notes)
        for li in booking.line_items
    ]


class SchedulingService:
    """Service for booking scheduling operations."""

    def __init__(
        self,
        pricing: PricingEngine,
        calendar: SlotCalendar,
        store: BookingStore,
        customers: CustomerStore,
        locks: SlotLocks,
        audit: AuditLogger,
        event_bus: EventBus,
        config: SchedulingConfig,
    ):
        self.pricing = pricing
        self.calendar = calendar
        self.store = store
        self.customers = customers
        self.locks = locks
        self.audit = audit
        self.event_bus = event_bus
        self.config = config

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def create_booking(self, data: BookingCreate, actor: str | None = None) -> Booking:
        """
        Create a new booking in PENDING status.

        A repeated call with the same idempotency key returns the booking the
        first call created.

        Args:
            data: Booking creation data
            actor: Who is creating it (defaults to current context)

        Returns:
            Created booking

        Raises:
            CustomerNotFound: If the customer does not exist
            ServiceNotFound: If a line item names an unknown service
            ServiceIneligible: If a service can't be booked for the vehicle
            InvalidInterval: If the interval is malformed or outside business hours
            SlotUnavailable: If the interval overlaps an active booking
        """
        if data.idempotency_key:
            existing = self.store.find_by_idempotency_key(data.idempotency_key)
            if existing is not None:
                logger.info(
                    f"Idempotent replay of booking {existing.booking_number} "
                    f"(key={data.idempotency_key})"
                )
                return existing

        customer = self.customers.find_customer_by_id(data.customer_id)
        if customer is None:
            raise CustomerNotFound(data.customer_id, field="customer_id")

        vehicle_type = data.vehicle.vehicle_type or customer.vehicle_type
        vehicle = data.vehicle.model_copy(update={"vehicle_type": vehicle_type})

        quote = self._quote(data.line_items, data.scheduled_date, vehicle_type, data.discount_amount)
        interval = self._build_interval(
            data.resource or self.config.default_resource,
            data.scheduled_date,
            data.start_time,
            data.end_time,
            quote.estimated_duration_minutes,
        )

        actor = actor or get_current_actor()

        with hold_all(self.locks, [_slot_key(interval)]):
            if data.idempotency_key:
                existing = self.store.find_by_idempotency_key(data.idempotency_key)
                if existing is not None:
                    return existing

            self._ensure_free(interval)

            now = now_utc()
            booking = Booking(
                id=uuid4(),
                booking_number=self.store.next_booking_number(interval.day),
                customer_id=data.customer_id,
                vehicle=vehicle,
                line_items=quote.line_items,
                interval=interval,
                estimated_duration_minutes=quote.estimated_duration_minutes,
                status=BookingStatus.PENDING,
                priority=data.priority,
                source=data.source,
                contact_preference=data.contact_preference,
                pricing=quote.pricing,
                status_history=[creation_entry(actor, now)],
                customer_notes=data.customer_notes,
                special_requests=data.special_requests,
                idempotency_key=data.idempotency_key,
                created_at=now,
                updated_at=now,
            )
            booking = self.store.insert(booking)

        logger.info(
            f"Created booking {booking.booking_number} on {interval.resource} "
            f"{interval.day} {interval.start:%H:%M}-{interval.end:%H:%M}"
        )

        self.audit.log_change(
            entity_type="booking",
            entity_id=booking.id,
            action=AuditAction.CREATE,
            changes={"created": booking.model_dump(mode="json", exclude_none=True)},
            actor=actor,
        )
        self.event_bus.publish(BookingCreated.create(booking))

        return booking

    def update_booking(self, booking_id: UUID, data: BookingUpdate, actor: str | None = None) -> Booking:
        """
        Update a modifiable booking.

        Schedule or line item changes rebuild the interval (end defaults to
        start + new estimated duration) and re-check conflicts excluding the
        booking's own slot. Line item, discount, or date changes re-price the
        booking; the previous pricing snapshot is discarded.

        Args:
            booking_id: Booking UUID
            data: Fields to update

        Returns:
            Updated booking

        Raises:
            BookingNotFound: If booking doesn't exist
            BookingNotModifiable: If booking is not pending or confirmed
            ServiceNotFound: If a new line item names an unknown service
            ServiceIneligible: If a new line item can't be booked for the vehicle
            InvalidInterval: If the new interval is malformed or outside business hours
            SlotUnavailable: If the new interval overlaps another active booking
        """
        current = self.get_booking(booking_id)
        ensure_modifiable(current)

        updates = data.model_dump(exclude_none=True)
        if not updates:
            return current

        day = data.scheduled_date or current.interval.day
        reschedules = data.touches_schedule or data.line_items is not None

        quote: Quote | None = None
        if data.touches_pricing:
            quote = self._quote(
                data.line_items if data.line_items is not None else _requests_from(current),
                day,
                current.vehicle.vehicle_type,
                data.discount_amount if data.discount_amount is not None else current.pricing.discount_amount,
            )

        interval = current.interval
        if reschedules:
            duration = quote.estimated_duration_minutes if quote else current.estimated_duration_minutes
            interval = self._build_interval(
                data.resource or current.interval.resource,
                day,
                data.start_time or current.interval.start,
                data.end_time,
                duration,
            )

        actor = actor or get_current_actor()

        with hold_all(self.locks, [_slot_key(current.interval), _slot_key(interval)]):
            current = self.get_booking(booking_id)
            ensure_modifiable(current)

            if reschedules:
                self._ensure_free(interval, exclude_booking_id=current.id)

            changes: dict = {k: getattr(data, k) for k in _PLAIN_UPDATE_FIELDS if k in updates}
            changes["interval"] = interval
            changes["updated_at"] = now_utc()
            if quote is not None:
                changes["line_items"] = quote.line_items
                changes["pricing"] = quote.pricing
                changes["estimated_duration_minutes"] = quote.estimated_duration_minutes

            updated = self.store.update(current.model_copy(update=changes), check_conflict=reschedules)

        diff = compute_changes(current.model_dump(mode="json"), updated.model_dump(mode="json"))
        if diff:
            self.audit.log_change(
                entity_type="booking",
                entity_id=updated.id,
                action=AuditAction.UPDATE,
                changes=diff,
                actor=actor,
            )

        return updated

    def transition_status(
        self,
        booking_id: UUID,
        new_status: BookingStatus,
        actor: str | None = None,
        reason: str | None = None,
    ) -> Booking:
        """
        Move a booking through the status state machine.

        Args:
            booking_id: Booking UUID
            new_status: Target status
            actor: Who is making the change (defaults to current context)
            reason: Optional free-text reason

        Returns:
            Updated booking with one new status history entry

        Raises:
            BookingNotFound: If booking doesn't exist
            InvalidTransition: If the state machine forbids the change
        """
        new_status = BookingStatus(new_status)
        actor = actor or get_current_actor()
        current = self.get_booking(booking_id)

        with hold_all(self.locks, [_slot_key(current.interval)]):
            current = self.get_booking(booking_id)
            updated = apply_transition(current, new_status, actor, reason, now_utc())
            updated = self.store.update(updated)

        logger.info(
            f"Booking {updated.booking_number}: {current.status.value} -> {new_status.value} by {actor}"
        )

        self.audit.log_change(
            entity_type="booking",
            entity_id=updated.id,
            action=AuditAction.TRANSITION,
            changes={
                "status": {"old": current.status.value, "new": new_status.value},
                "reason": reason,
            },
            actor=actor,
        )

        self.event_bus.publish(BookingStatusChanged.create(updated, current.status.value))
        if new_status == BookingStatus.COMPLETED:
            self.event_bus.publish(BookingCompleted.create(updated))
        elif new_status in (BookingStatus.CANCELLED, BookingStatus.NO_SHOW):
            self.event_bus.publish(BookingCancelled.create(updated))

        return updated

    def cancel_booking(self, booking_id: UUID, actor: str | None = None, reason: str | None = None) -> Booking:
        """
        Cancel an active booking, freeing its slot.

        Raises:
            BookingNotFound: If booking doesn't exist
            InvalidTransition: If booking is already terminal
        """
        return self.transition_status(booking_id, BookingStatus.CANCELLED, actor=actor, reason=reason)

    def reschedule_booking(
        self,
        booking_id: UUID,
        scheduled_date: date,
        start_time: time,
        end_time: time | None = None,
        resource: str | None = None,
        actor: str | None = None,
        reason: str | None = None,
    ) -> tuple[Booking, Booking]:
        """
        Move a booking to a new slot by replacing it.

        A new PENDING booking is created with the same line items re-priced
        for the new date; the original is closed as RESCHEDULED and points at
        the replacement. Both writes commit together or not at all. Any
        payment record moves to the replacement.

        Returns:
            (original, replacement)

        Raises:
            BookingNotFound: If booking doesn't exist
            BookingNotModifiable: If booking is not pending or confirmed
            InvalidInterval: If the new interval is malformed or outside business hours
            SlotUnavailable: If the new interval overlaps another active booking
        """
        current = self.get_booking(booking_id)
        ensure_modifiable(current)

        quote = self._quote(
            _requests_from(current),
            scheduled_date,
            current.vehicle.vehicle_type,
            current.pricing.discount_amount,
        )
        interval = self._build_interval(
            resource or current.interval.resource,
            scheduled_date,
            start_time,
            end_time,
            quote.estimated_duration_minutes,
        )

        actor = actor or get_current_actor()

        with hold_all(self.locks, [_slot_key(current.interval), _slot_key(interval)]):
            current = self.get_booking(booking_id)
            ensure_modifiable(current)
            self._ensure_free(interval, exclude_booking_id=current.id)

            now = now_utc()
            replacement = current.model_copy(update={
                "id": uuid4(),
                "booking_number": self.store.next_booking_number(interval.day),
                "line_items": quote.line_items,
                "interval": interval,
                "estimated_duration_minutes": quote.estimated_duration_minutes,
                "status": BookingStatus.PENDING,
                "pricing": quote.pricing,
                "status_history": [creation_entry(actor, now)],
                "idempotency_key": None,
                "rescheduled_from": current.id,
                "rescheduled_to": None,
                "created_at": now,
                "updated_at": now,
            }, deep=True)
            original = mark_rescheduled(current, replacement.id, actor, reason, now)

            original, replacement = self.store.replace(original, replacement)

        logger.info(
            f"Rescheduled booking {original.booking_number} -> {replacement.booking_number} "
            f"({interval.resource} {interval.day} {interval.start:%H:%M})"
        )

        self.audit.log_change(
            entity_type="booking",
            entity_id=original.id,
            action=AuditAction.TRANSITION,
            changes={
                "status": {"old": current.status.value, "new": BookingStatus.RESCHEDULED.value},
                "rescheduled_to": str(replacement.id),
                "reason": reason,
            },
            actor=actor,
        )
        self.audit.log_change(
            entity_type="booking",
            entity_id=replacement.id,
            action=AuditAction.CREATE,
            changes={"created": replacement.model_dump(mode="json", exclude_none=True)},
            actor=actor,
        )
        self.event_bus.publish(BookingRescheduled.create(original, replacement))

        return original, replacement

    # =========================================================================
    # READS
    # =========================================================================

    def get_booking(self, booking_id: UUID) -> Booking:
        """
        Get booking by ID.

        Raises:
            BookingNotFound: If booking doesn't exist
        """
        booking = self.store.get(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id, field="booking_id")
        return booking

    def get_booking_history(self, booking_id: UUID) -> list:
        """Audit log entries for a booking, newest first."""
        self.get_booking(booking_id)
        return self.audit.get_entity_history("booking", booking_id)

    def list_customer_bookings(self, customer_id: UUID, limit: int = 50) -> list[Booking]:
        """Bookings for a customer, most recent scheduled date first."""
        return self.store.list_for_customer(customer_id, limit=limit)

    def list_bookings(
        self,
        start: date,
        end: date,
        status: BookingStatus | None = None,
    ) -> list[Booking]:
        """
        Bookings scheduled within [start, end], optionally filtered by status.

        Raises:
            InvalidInterval: If end is before start
        """
        if end < start:
            raise InvalidInterval("Range end is before start", field="end")
        bookings = self.store.list_in_range(start, end)
        if status is not None:
            bookings = [b for b in bookings if b.status == status]
        return bookings

    def get_availability(
        self,
        resource: str,
        day: date,
        duration_minutes: int,
        granularity_minutes: int | None = None,
    ) -> list[TimeInterval]:
        """
        Free slots of the given duration on a resource/day.

        Raises:
            InvalidInterval: If duration or granularity is not positive
        """
        return self.calendar.available_slots(
            resource, day, duration_minutes, granularity_minutes=granularity_minutes
        )

    def dashboard_summary(self, start: date, end: date, today: date | None = None) -> DashboardSummary:
        """
        Aggregate bookings scheduled within [start, end].

        Revenue counts only bookings that are both completed and paid.
        Today's figures are read for `today` (defaults to the current UTC day)
        regardless of whether it falls inside the range.

        Raises:
            InvalidInterval: If end is before start
        """
        bookings = self.list_bookings(start, end)
        today = today or today_utc()

        counts = Counter(b.status.value for b in bookings)
        counts_by_status = {status.value: counts.get(status.value, 0) for status in BookingStatus}

        per_day_count: dict[date, int] = defaultdict(int)
        per_day_revenue: dict[date, Decimal] = defaultdict(lambda: _ZERO)
        revenue_total = _ZERO

        for booking in bookings:
            per_day_count[booking.interval.day] += 1
            if booking.status == BookingStatus.COMPLETED and booking.payment.status == PaymentStatus.PAID:
                per_day_revenue[booking.interval.day] += booking.pricing.total_amount
                revenue_total += booking.pricing.total_amount

        todays = self.store.list_in_range(today, today)

        return DashboardSummary(
            start=start,
            end=end,
            total_bookings=len(bookings),
            counts_by_status=counts_by_status,
            revenue_total=revenue_total,
            currency=self.config.currency,
            pending_bookings=counts_by_status[BookingStatus.PENDING.value],
            today_bookings=sum(1 for b in todays if b.status != BookingStatus.CANCELLED),
            completed_today=sum(1 for b in todays if b.status == BookingStatus.COMPLETED),
            daily=[
                DailyStat(day=day, bookings=per_day_count[day], revenue=per_day_revenue[day])
                for day in sorted(per_day_count)
            ],
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _quote(
        self,
        items: list[LineItemRequest],
        day: date,
        vehicle_type: VehicleType | None,
        discount_amount: Decimal,
    ) -> Quote:
        return self.pricing.quote(items, PricingContext(
            day=day,
            vehicle_type=vehicle_type,
            discount_amount=discount_amount,
            tax_rate=self.config.tax_rate,
            currency=self.config.currency,
        ))

    def _build_interval(
        self,
        resource: str,
        day: date,
        start: time,
        end: time | None,
        duration_minutes: int,
    ) -> TimeInterval:
        """
        Build and validate the interval a booking will occupy.

        Raises:
            InvalidInterval: If end is not after start, shorter than the
                estimated duration, crosses midnight, or leaves business hours
        """
        try:
            if end is None:
                interval = TimeInterval.starting_at(resource, day, start, duration_minutes)
            else:
                interval = TimeInterval(resource=resource, day=day, start=start, end=end)
        except ValueError as e:
            raise InvalidInterval(f"Invalid interval: {e}", field="interval")

        if interval.duration_minutes < duration_minutes:
            raise InvalidInterval(
                f"Interval of {interval.duration_minutes} minutes is shorter than "
                f"the estimated {duration_minutes} minutes",
                field="end_time",
            )

        self.calendar.validate_interval(interval)
        return interval

    def _ensure_free(self, interval: TimeInterval, exclude_booking_id: UUID | None = None) -> None:
        conflict = self.calendar.find_conflict(interval, exclude_booking_id=exclude_booking_id)
        if conflict is not None:
            raise SlotUnavailable(
                f"{interval.resource} {interval.day} {interval.start:%H:%M}-{interval.end:%H:%M} "
                f"overlaps booking {conflict.booking_number}",
                conflicting_booking_id=conflict.id,
            )

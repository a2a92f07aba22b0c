"""Tests for SchedulingService."""

from datetime import date, time
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from core.errors import (
    BookingNotFound, BookingNotModifiable, CustomerNotFound, InvalidInterval, InvalidTransition,
    ServiceIneligible, ServiceNotFound, SlotUnavailable,
)
from core.models import (
    BookingStatus, BookingUpdate, LineItemRequest, Payment, PaymentStatus, Priority,
    VehicleSnapshot, VehicleType,
)
from utils.actor_context import actor_context

TEST_DAY = date(2024, 6, 1)
TEST_RESOURCE = "bay1"
TEST_CUSTOMER_ID = UUID("00000000-0000-0000-0000-000000000001")
OIL_CHANGE_ID = UUID("00000000-0000-0000-0000-0000000000a1")
BRAKE_SERVICE_ID = UUID("00000000-0000-0000-0000-0000000000b1")


def _advance(scheduling, booking, *statuses):
    for status in statuses:
        booking = scheduling.transition_status(booking.id, status)
    return booking


# =============================================================================
# CREATE
# =============================================================================


class TestCreateBooking:

    def test_creates_pending_booking(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request())

        assert booking.status == BookingStatus.PENDING
        assert booking.booking_number == "BK202406010001"
        assert booking.interval.resource == TEST_RESOURCE
        assert booking.interval.start == time(10, 0)
        assert booking.interval.end == time(10, 30)
        assert booking.estimated_duration_minutes == 30

    def test_prices_line_items(self, scheduling, booking_request):
        """One oil change: 150 + 22.50 tax."""
        booking = scheduling.create_booking(booking_request())

        assert booking.pricing.subtotal == Decimal("150.00")
        assert booking.pricing.tax_amount == Decimal("22.50")
        assert booking.pricing.total_amount == Decimal("172.50")
        assert booking.line_items[0].service_name == "Oil Change"

    def test_creation_history_entry(self, scheduling, booking_request):
        with actor_context("front-desk"):
            booking = scheduling.create_booking(booking_request())

        assert len(booking.status_history) == 1
        entry = booking.status_history[0]
        assert entry.previous_status is None
        assert entry.new_status == BookingStatus.PENDING
        assert entry.actor == "front-desk"

    def test_booking_numbers_increment_per_day(self, scheduling, booking_request):
        first = scheduling.create_booking(booking_request(start=time(9, 0)))
        second = scheduling.create_booking(booking_request(start=time(11, 0)))
        other_day = scheduling.create_booking(booking_request(scheduled_date=date(2024, 6, 2)))

        assert first.booking_number == "BK202406010001"
        assert second.booking_number == "BK202406010002"
        assert other_day.booking_number == "BK202406020001"

    def test_explicit_end_time_kept(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request(end_time=time(11, 0)))

        assert booking.interval.end == time(11, 0)

    def test_end_time_shorter_than_duration_rejected(self, scheduling, booking_request):
        with pytest.raises(InvalidInterval) as exc_info:
            scheduling.create_booking(booking_request(end_time=time(10, 15)))

        assert exc_info.value.field == "end_time"

    def test_end_before_start_rejected(self, scheduling, booking_request):
        with pytest.raises(InvalidInterval):
            scheduling.create_booking(booking_request(end_time=time(9, 0)))

    def test_outside_business_hours_rejected(self, scheduling, booking_request, booking_store):
        with pytest.raises(InvalidInterval):
            scheduling.create_booking(booking_request(start=time(17, 45)))

        assert booking_store.list_in_range(TEST_DAY, TEST_DAY) == []

    def test_default_resource_used_when_missing(self, scheduling, booking_request, config):
        booking = scheduling.create_booking(booking_request(resource=None))

        assert booking.interval.resource == config.default_resource

    def test_unknown_customer(self, scheduling, booking_request):
        with pytest.raises(CustomerNotFound):
            scheduling.create_booking(booking_request(customer_id=uuid4()))

    def test_unknown_service(self, scheduling, booking_request):
        with pytest.raises(ServiceNotFound):
            scheduling.create_booking(
                booking_request(line_items=[LineItemRequest(service_id=uuid4())])
            )

    def test_ineligible_vehicle(self, scheduling, booking_request):
        truck = VehicleSnapshot(plate_number="TRK 1", vehicle_type=VehicleType.TRUCK)

        with pytest.raises(ServiceIneligible):
            scheduling.create_booking(booking_request(
                vehicle=truck,
                line_items=[LineItemRequest(service_id=BRAKE_SERVICE_ID)],
            ))

    def test_vehicle_type_falls_back_to_customer(self, scheduling, booking_request):
        """Customer drives a sedan, so brake inspection is allowed."""
        booking = scheduling.create_booking(booking_request(
            vehicle=VehicleSnapshot(plate_number="ABC 1234"),
            line_items=[LineItemRequest(service_id=BRAKE_SERVICE_ID)],
        ))

        assert booking.vehicle.vehicle_type == VehicleType.SEDAN

    def test_overlap_rejected(self, scheduling, booking_request):
        first = scheduling.create_booking(booking_request(start=time(10, 0)))

        with pytest.raises(SlotUnavailable) as exc_info:
            scheduling.create_booking(booking_request(start=time(10, 15)))

        assert exc_info.value.conflicting_booking_id == first.id

    def test_adjacent_slot_allowed(self, scheduling, booking_request):
        scheduling.create_booking(booking_request(start=time(10, 0)))

        booking = scheduling.create_booking(booking_request(start=time(10, 30)))

        assert booking.interval.start == time(10, 30)

    def test_same_time_other_resource_allowed(self, scheduling, booking_request):
        scheduling.create_booking(booking_request(resource="bay1"))

        booking = scheduling.create_booking(booking_request(resource="bay2"))

        assert booking.interval.resource == "bay2"

    def test_idempotent_replay_returns_same_booking(self, scheduling, booking_request, booking_store):
        first = scheduling.create_booking(booking_request(idempotency_key="req-1"))
        second = scheduling.create_booking(booking_request(idempotency_key="req-1"))

        assert second.id == first.id
        assert len(booking_store.list_in_range(TEST_DAY, TEST_DAY)) == 1

    def test_audit_and_customer_counter(self, scheduling, booking_request, customer_store):
        booking = scheduling.create_booking(booking_request())

        history = scheduling.get_booking_history(booking.id)
        assert [e.action for e in history] == ["create"]
        assert customer_store.find_customer_by_id(TEST_CUSTOMER_ID).total_bookings == 1

    def test_publishes_booking_created(self, scheduling, booking_request, event_bus):
        received = []
        event_bus.subscribe("BookingCreated", received.append)

        booking = scheduling.create_booking(booking_request())

        assert [e.booking.id for e in received] == [booking.id]


# =============================================================================
# UPDATE
# =============================================================================


class TestUpdateBooking:

    def test_plain_fields(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request())

        updated = scheduling.update_booking(
            booking.id, BookingUpdate(priority=Priority.HIGH, customer_notes="Key under mat")
        )

        assert updated.priority == Priority.HIGH
        assert updated.customer_notes == "Key under mat"
        assert updated.interval == booking.interval
        assert updated.pricing == booking.pricing

    def test_empty_update_is_noop(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request())

        assert scheduling.update_booking(booking.id, BookingUpdate()) == booking

    def test_new_line_items_reprice_and_extend_interval(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request())

        updated = scheduling.update_booking(booking.id, BookingUpdate(line_items=[
            LineItemRequest(service_id=OIL_CHANGE_ID, quantity=2),
            LineItemRequest(service_id=BRAKE_SERVICE_ID),
        ]))

        assert updated.pricing.total_amount == Decimal("437.00")
        assert updated.estimated_duration_minutes == 120
        assert updated.interval.start == time(10, 0)
        assert updated.interval.end == time(12, 0)

    def test_discount_reprices(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request())

        updated = scheduling.update_booking(booking.id, BookingUpdate(discount_amount=Decimal("22.50")))

        assert updated.pricing.total_amount == Decimal("150.00")

    def test_move_to_own_overlapping_slot_allowed(self, scheduling, booking_request):
        """Shifting by 15 minutes overlaps only the booking's own old slot."""
        booking = scheduling.create_booking(booking_request())

        updated = scheduling.update_booking(booking.id, BookingUpdate(start_time=time(10, 15)))

        assert updated.interval.start == time(10, 15)
        assert updated.interval.end == time(10, 45)

    def test_move_into_other_booking_rejected(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request(start=time(10, 0)))
        scheduling.create_booking(booking_request(start=time(11, 0)))

        with pytest.raises(SlotUnavailable):
            scheduling.update_booking(booking.id, BookingUpdate(start_time=time(11, 0)))

        assert scheduling.get_booking(booking.id).interval.start == time(10, 0)

    def test_frees_old_slot(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request(start=time(10, 0)))
        scheduling.update_booking(booking.id, BookingUpdate(start_time=time(14, 0)))

        other = scheduling.create_booking(booking_request(start=time(10, 0)))

        assert other.interval.start == time(10, 0)

    def test_not_modifiable_once_in_progress(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request())
        _advance(scheduling, booking, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS)

        with pytest.raises(BookingNotModifiable):
            scheduling.update_booking(booking.id, BookingUpdate(customer_notes="late"))

    def test_unknown_booking(self, scheduling):
        with pytest.raises(BookingNotFound):
            scheduling.update_booking(uuid4(), BookingUpdate(customer_notes="x"))

    def test_audit_records_diff(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request())
        scheduling.update_booking(booking.id, BookingUpdate(priority=Priority.EMERGENCY))

        latest = scheduling.get_booking_history(booking.id)[0]

        assert latest.action == "update"
        assert latest.changes["priority"] == {"old": "normal", "new": "emergency"}
        assert "updated_at" not in latest.changes


# =============================================================================
# TRANSITIONS
# =============================================================================


class TestTransitionStatus:

    def test_full_lifecycle_appends_history(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request())

        done = _advance(
            scheduling, booking,
            BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED,
        )

        assert done.status == BookingStatus.COMPLETED
        assert [h.new_status for h in done.status_history] == [
            BookingStatus.PENDING, BookingStatus.CONFIRMED,
            BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED,
        ]
        assert done.completed_at is not None

    def test_accepts_status_string(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request())

        assert scheduling.transition_status(booking.id, "confirmed").status == BookingStatus.CONFIRMED

    def test_invalid_transition_changes_nothing(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request())

        with pytest.raises(InvalidTransition):
            scheduling.transition_status(booking.id, BookingStatus.COMPLETED)

        assert scheduling.get_booking(booking.id).status_history == booking.status_history

    def test_terminal_statuses_are_closed(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request())
        scheduling.cancel_booking(booking.id, reason="changed plans")

        for status in BookingStatus:
            with pytest.raises(InvalidTransition):
                scheduling.transition_status(booking.id, status)

    def test_cancel_frees_slot(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request())
        cancelled = scheduling.cancel_booking(booking.id, actor="customer", reason="sick")

        again = scheduling.create_booking(booking_request())

        assert cancelled.cancelled_by == "customer"
        assert cancelled.cancellation_reason == "sick"
        assert again.status == BookingStatus.PENDING

    def test_completion_records_customer_spend(self, scheduling, booking_request, customer_store):
        booking = scheduling.create_booking(booking_request())
        _advance(
            scheduling, booking,
            BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED,
        )

        assert customer_store.find_customer_by_id(TEST_CUSTOMER_ID).total_spent == Decimal("172.50")

    def test_events_published(self, scheduling, booking_request, event_bus):
        changed, cancelled = [], []
        event_bus.subscribe("BookingStatusChanged", changed.append)
        event_bus.subscribe("BookingCancelled", cancelled.append)
        booking = scheduling.create_booking(booking_request())

        scheduling.transition_status(booking.id, BookingStatus.NO_SHOW)

        assert [e.previous_status for e in changed] == ["pending"]
        assert len(cancelled) == 1

    def test_audit_carries_reason(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request())
        scheduling.transition_status(booking.id, BookingStatus.CONFIRMED, reason="phoned")

        latest = scheduling.get_booking_history(booking.id)[0]

        assert latest.action == "transition"
        assert latest.changes == {"status": {"old": "pending", "new": "confirmed"}, "reason": "phoned"}


# =============================================================================
# RESCHEDULE
# =============================================================================


class TestRescheduleBooking:

    def test_replaces_booking(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request())

        original, replacement = scheduling.reschedule_booking(
            booking.id, date(2024, 6, 3), time(14, 0), reason="customer asked"
        )

        assert original.status == BookingStatus.RESCHEDULED
        assert original.rescheduled_to == replacement.id
        assert replacement.status == BookingStatus.PENDING
        assert replacement.rescheduled_from == original.id
        assert replacement.booking_number == "BK202406030001"
        assert replacement.interval.day == date(2024, 6, 3)
        assert replacement.interval.end == time(14, 30)
        assert len(replacement.status_history) == 1

    def test_frees_original_slot(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request())
        scheduling.reschedule_booking(booking.id, TEST_DAY, time(15, 0))

        again = scheduling.create_booking(booking_request())

        assert again.interval.start == time(10, 0)

    def test_overlapping_own_old_slot_allowed(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request())

        _, replacement = scheduling.reschedule_booking(booking.id, TEST_DAY, time(10, 15))

        assert replacement.interval.start == time(10, 15)

    def test_conflict_leaves_original_untouched(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request(start=time(10, 0)))
        scheduling.create_booking(booking_request(start=time(14, 0)))

        with pytest.raises(SlotUnavailable):
            scheduling.reschedule_booking(booking.id, TEST_DAY, time(14, 0))

        assert scheduling.get_booking(booking.id).status == BookingStatus.PENDING

    def test_completed_booking_cannot_be_rescheduled(self, scheduling, booking_request):
        booking = scheduling.create_booking(booking_request())
        _advance(
            scheduling, booking,
            BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED,
        )

        with pytest.raises(BookingNotModifiable):
            scheduling.reschedule_booking(booking.id, TEST_DAY, time(14, 0))

    def test_payment_moves_to_replacement(self, scheduling, booking_request, booking_store):
        booking = scheduling.create_booking(booking_request())
        stored = booking_store.get(booking.id)
        booking_store.update(stored.model_copy(update={
            "payment": Payment(status=PaymentStatus.PAID, transaction_id="pay_1",
                               paid_amount=Decimal("172.50")),
        }))

        original, replacement = scheduling.reschedule_booking(booking.id, TEST_DAY, time(15, 0))

        assert replacement.payment.status == PaymentStatus.PAID
        assert replacement.payment.transaction_id == "pay_1"
        assert original.payment == Payment()
        assert booking_store.get(booking.id).payment.transaction_id is None
        assert booking_store.find_by_transaction_id("pay_1").id == replacement.id

    def test_emits_rescheduled_not_created(self, scheduling, booking_request, event_bus, customer_store):
        booking = scheduling.create_booking(booking_request())
        created, rescheduled = [], []
        event_bus.subscribe("BookingCreated", created.append)
        event_bus.subscribe("BookingRescheduled", rescheduled.append)

        scheduling.reschedule_booking(booking.id, TEST_DAY, time(15, 0))

        assert created == []
        assert len(rescheduled) == 1
        assert customer_store.find_customer_by_id(TEST_CUSTOMER_ID).total_bookings == 1


# =============================================================================
# READS
# =============================================================================


class TestReads:

    def test_get_unknown_booking(self, scheduling):
        with pytest.raises(BookingNotFound):
            scheduling.get_booking(uuid4())

    def test_list_bookings_filters_status(self, scheduling, booking_request):
        first = scheduling.create_booking(booking_request(start=time(9, 0)))
        scheduling.create_booking(booking_request(start=time(11, 0)))
        scheduling.cancel_booking(first.id)

        pending = scheduling.list_bookings(TEST_DAY, TEST_DAY, BookingStatus.PENDING)

        assert [b.interval.start for b in pending] == [time(11, 0)]

    def test_list_bookings_inverted_range(self, scheduling):
        with pytest.raises(InvalidInterval):
            scheduling.list_bookings(date(2024, 6, 2), date(2024, 6, 1))

    def test_list_customer_bookings_newest_first(self, scheduling, booking_request):
        scheduling.create_booking(booking_request(scheduled_date=date(2024, 6, 1)))
        scheduling.create_booking(booking_request(scheduled_date=date(2024, 6, 5)))

        bookings = scheduling.list_customer_bookings(TEST_CUSTOMER_ID)

        assert [b.interval.day for b in bookings] == [date(2024, 6, 5), date(2024, 6, 1)]

    def test_availability_excludes_booked(self, scheduling, booking_request):
        scheduling.create_booking(booking_request(start=time(10, 0), end_time=time(11, 0)))

        starts = [s.start for s in scheduling.get_availability(TEST_RESOURCE, TEST_DAY, 60)]

        assert time(9, 0) in starts
        assert time(11, 0) in starts
        assert time(9, 30) not in starts
        assert time(10, 30) not in starts


class TestDashboard:

    def test_summary(self, scheduling, booking_request, booking_store):
        paid = scheduling.create_booking(booking_request(start=time(9, 0)))
        unpaid = scheduling.create_booking(booking_request(start=time(10, 0)))
        scheduling.create_booking(booking_request(start=time(11, 0)))
        cancelled = scheduling.create_booking(booking_request(start=time(12, 0)))
        scheduling.create_booking(booking_request(scheduled_date=date(2024, 6, 3)))

        for booking in (paid, unpaid):
            _advance(
                scheduling, booking,
                BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED,
            )
        stored = booking_store.get(paid.id)
        booking_store.update(stored.model_copy(update={
            "payment": Payment(status=PaymentStatus.PAID, paid_amount=Decimal("172.50")),
        }))
        scheduling.cancel_booking(cancelled.id)

        summary = scheduling.dashboard_summary(TEST_DAY, date(2024, 6, 7), today=TEST_DAY)

        assert summary.total_bookings == 5
        assert summary.counts_by_status["completed"] == 2
        assert summary.counts_by_status["pending"] == 2
        assert summary.counts_by_status["cancelled"] == 1
        assert summary.counts_by_status["no_show"] == 0
        assert summary.revenue_total == Decimal("172.50")
        assert summary.pending_bookings == 2
        assert summary.today_bookings == 3
        assert summary.completed_today == 2
        assert [(d.day, d.bookings) for d in summary.daily] == [
            (TEST_DAY, 4), (date(2024, 6, 3), 1),
        ]
        assert summary.daily[0].revenue == Decimal("172.50")

    def test_empty_range(self, scheduling):
        summary = scheduling.dashboard_summary(TEST_DAY, TEST_DAY, today=TEST_DAY)

        assert summary.total_bookings == 0
        assert summary.revenue_total == Decimal("0.00")
        assert summary.daily == []
        assert set(summary.counts_by_status) == {s.value for s in BookingStatus}

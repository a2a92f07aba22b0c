"""Tests for domain model validation and derived properties."""

from datetime import date, time
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from core.models import (
    BookingStatus, BookingUpdate, LineItemRequest, PaymentStatus, PromotionalOffer,
    ServiceCategory, ServiceDefinition, TimeInterval, VehicleType, Payment,
)

DAY = date(2024, 6, 1)


class TestTimeInterval:

    def test_start_must_precede_end(self):
        with pytest.raises(ValidationError):
            TimeInterval(resource="bay1", day=DAY, start=time(11, 0), end=time(10, 0))

    def test_zero_length_rejected(self):
        with pytest.raises(ValidationError):
            TimeInterval(resource="bay1", day=DAY, start=time(10, 0), end=time(10, 0))

    def test_starting_at_computes_end(self):
        interval = TimeInterval.starting_at("bay1", DAY, time(10, 15), 90)

        assert interval.end == time(11, 45)
        assert interval.duration_minutes == 90

    def test_starting_at_cannot_cross_midnight(self):
        with pytest.raises(ValueError):
            TimeInterval.starting_at("bay1", DAY, time(23, 30), 60)

    def test_overlap_is_symmetric_and_half_open(self):
        a = TimeInterval(resource="bay1", day=DAY, start=time(10, 0), end=time(11, 0))
        b = TimeInterval(resource="bay1", day=DAY, start=time(10, 59), end=time(12, 0))
        c = TimeInterval(resource="bay1", day=DAY, start=time(11, 0), end=time(12, 0))

        assert a.overlaps(b) and b.overlaps(a)
        assert not a.overlaps(c) and not c.overlaps(a)

    def test_different_day_or_resource_never_overlaps(self):
        a = TimeInterval(resource="bay1", day=DAY, start=time(10, 0), end=time(11, 0))

        assert not a.overlaps(a.model_copy(update={"resource": "bay2"}))
        assert not a.overlaps(a.model_copy(update={"day": date(2024, 6, 2)}))

    def test_is_frozen(self):
        interval = TimeInterval(resource="bay1", day=DAY, start=time(10, 0), end=time(11, 0))

        with pytest.raises(ValidationError):
            interval.start = time(9, 0)


class TestServiceDefinition:

    def test_empty_vehicle_types_is_unrestricted(self):
        service = ServiceDefinition(
            id=uuid4(), name="Wash", category=ServiceCategory.MAINTENANCE,
            base_price=Decimal("20"), duration_minutes=15,
        )

        assert service.is_unrestricted

    def test_minimum_duration(self):
        with pytest.raises(ValidationError):
            ServiceDefinition(
                id=uuid4(), name="Quick", category=ServiceCategory.MAINTENANCE,
                base_price=Decimal("20"), duration_minutes=5,
            )

    def test_restricted_types(self):
        service = ServiceDefinition(
            id=uuid4(), name="Tires", category=ServiceCategory.TIRE_SERVICE,
            base_price=Decimal("200"), duration_minutes=60,
            vehicle_types=[VehicleType.TRUCK],
        )

        assert not service.is_unrestricted
        assert VehicleType.TRUCK in service.vehicle_types


class TestPromotionalOffer:

    def test_inclusive_window(self):
        offer = PromotionalOffer(
            title="June", discount_percentage=Decimal("10"),
            valid_from=date(2024, 6, 1), valid_to=date(2024, 6, 30),
        )

        assert offer.applies_on(date(2024, 6, 1))
        assert offer.applies_on(date(2024, 6, 30))
        assert not offer.applies_on(date(2024, 7, 1))

    def test_inactive_never_applies(self):
        offer = PromotionalOffer(
            title="Off", discount_percentage=Decimal("10"),
            valid_from=date(2024, 6, 1), valid_to=date(2024, 6, 30), is_active=False,
        )

        assert not offer.applies_on(date(2024, 6, 15))

    def test_inverted_window_rejected(self):
        with pytest.raises(ValidationError):
            PromotionalOffer(
                title="Bad", discount_percentage=Decimal("10"),
                valid_from=date(2024, 6, 30), valid_to=date(2024, 6, 1),
            )


class TestBooking:

    def test_status_sets(self, make_booking):
        assert make_booking(status=BookingStatus.IN_PROGRESS).is_active
        assert not make_booking(status=BookingStatus.IN_PROGRESS).is_modifiable
        assert make_booking(status=BookingStatus.CONFIRMED).is_modifiable
        assert not make_booking(status=BookingStatus.RESCHEDULED).is_active

    def test_is_paid(self, make_booking):
        assert not make_booking().is_paid
        assert make_booking(payment=Payment(status=PaymentStatus.PAID)).is_paid

    def test_estimated_completion_time(self, make_booking):
        booking = make_booking(start=time(10, 0), end=time(11, 30))

        assert booking.estimated_completion_time.time() == time(11, 30)


class TestBookingUpdate:

    def test_empty_update_touches_nothing(self):
        update = BookingUpdate()

        assert not update.touches_schedule
        assert not update.touches_pricing

    def test_date_change_touches_both(self):
        update = BookingUpdate(scheduled_date=DAY)

        assert update.touches_schedule
        assert update.touches_pricing

    def test_line_items_touch_pricing_only(self):
        update = BookingUpdate(line_items=[LineItemRequest(service_id=uuid4())])

        assert update.touches_pricing
        assert not update.touches_schedule

    def test_empty_line_items_rejected(self):
        with pytest.raises(ValidationError):
            BookingUpdate(line_items=[])

    def test_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            LineItemRequest(service_id=uuid4(), quantity=0)

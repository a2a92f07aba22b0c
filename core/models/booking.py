"""Booking domain models.

Line items and pricing are snapshots taken when the booking is created or
modified; later catalog price changes never rewrite historical bookings.
"""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.interval import TimeInterval
from core.models.service import VehicleType


class BookingStatus(str, Enum):
    """Booking lifecycle status."""

    PENDING = "pending"            # Waiting for confirmation
    CONFIRMED = "confirmed"        # Confirmed by the center
    IN_PROGRESS = "in_progress"    # Work has started
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    RESCHEDULED = "rescheduled"    # Replaced by a booking on a new slot


ACTIVE_STATUSES = frozenset({
    BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS,
})
MODIFIABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})
TERMINAL_STATUSES = frozenset({
    BookingStatus.COMPLETED, BookingStatus.CANCELLED,
    BookingStatus.NO_SHOW, BookingStatus.RESCHEDULED,
})


class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    EMERGENCY = "emergency"


class BookingSource(str, Enum):
    WEBSITE = "website"
    MOBILE_APP = "mobile_app"
    PHONE = "phone"
    WALK_IN = "walk_in"
    REFERRAL = "referral"


class ContactPreference(str, Enum):
    PHONE = "phone"
    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"


class PaymentStatus(str, Enum):
    """Payment state as reported by the gateway or front desk."""

    PENDING = "pending"
    PAID = "paid"
    PARTIAL = "partial"
    REFUNDED = "refunded"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    GATEWAY = "gateway"
    APPLE_PAY = "apple_pay"
    STC_PAY = "stc_pay"


class VehicleSnapshot(BaseModel):
    """Vehicle details captured at booking time (not a live reference)."""

    plate_number: str = Field(..., min_length=1, max_length=20)
    make: str | None = Field(None, max_length=50)
    model: str | None = Field(None, max_length=50)
    year: int | None = Field(None, ge=1900, le=2100)
    mileage: int | None = Field(None, ge=0)
    vehicle_type: VehicleType | None = None


class LineItemRequest(BaseModel):
    """A requested (service, quantity) pair, before pricing."""

    service_id: UUID
    quantity: int = Field(1, ge=1)
    notes: str | None = Field(None, max_length=500)


class LineItem(BaseModel):
    """Priced line item snapshotted onto a booking."""

    service_id: UUID
    service_name: str
    quantity: int = Field(..., ge=1)
    unit_price: Decimal = Field(..., ge=0)
    line_total: Decimal = Field(..., ge=0)
    duration_minutes: int = Field(..., ge=0)  # service duration x quantity
    notes: str | None = None


class Pricing(BaseModel):
    """Priced quote. total_amount = max(0, subtotal + tax_amount - discount_amount)."""

    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    currency: str


class Payment(BaseModel):
    """Payment sub-record; only results reported by the gateway are stored."""

    status: PaymentStatus = PaymentStatus.PENDING
    method: PaymentMethod | None = None
    transaction_id: str | None = None
    paid_amount: Decimal = Decimal("0.00")
    paid_at: datetime | None = None
    refund_amount: Decimal = Decimal("0.00")
    refund_reason: str | None = None
    refunded_at: datetime | None = None


class StatusChange(BaseModel):
    """One entry of a booking's status audit trail."""

    previous_status: BookingStatus | None
    new_status: BookingStatus
    changed_at: datetime
    actor: str
    reason: str | None = None


class BookingCreate(BaseModel):
    """Data required to create a booking."""

    customer_id: UUID
    vehicle: VehicleSnapshot
    line_items: list[LineItemRequest] = Field(..., min_length=1)
    scheduled_date: date
    start_time: time
    end_time: time | None = None  # defaults to start + estimated duration
    resource: str | None = Field(None, min_length=1, max_length=64)
    discount_amount: Decimal = Field(Decimal("0"), ge=0)
    priority: Priority = Priority.NORMAL
    source: BookingSource = BookingSource.WEBSITE
    contact_preference: ContactPreference = ContactPreference.PHONE
    customer_notes: str | None = Field(None, max_length=2000)
    special_requests: str | None = Field(None, max_length=2000)
    idempotency_key: str | None = Field(None, min_length=1, max_length=255)


class BookingUpdate(BaseModel):
    """Data that can be updated on a modifiable booking. All fields optional."""

    line_items: list[LineItemRequest] | None = Field(None, min_length=1)
    scheduled_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    resource: str | None = Field(None, min_length=1, max_length=64)
    discount_amount: Decimal | None = Field(None, ge=0)
    priority: Priority | None = None
    contact_preference: ContactPreference | None = None
    customer_notes: str | None = Field(None, max_length=2000)
    special_requests: str | None = Field(None, max_length=2000)

    @property
    def touches_schedule(self) -> bool:
        return any(
            v is not None
            for v in (self.scheduled_date, self.start_time, self.end_time, self.resource)
        )

    @property
    def touches_pricing(self) -> bool:
        return (
            self.line_items is not None
            or self.discount_amount is not None
            or self.scheduled_date is not None
        )


class Booking(BaseModel):
    """Full booking entity as stored."""

    id: UUID
    booking_number: str
    customer_id: UUID
    vehicle: VehicleSnapshot
    line_items: list[LineItem]
    interval: TimeInterval
    estimated_duration_minutes: int
    status: BookingStatus
    priority: Priority = Priority.NORMAL
    source: BookingSource = BookingSource.WEBSITE
    contact_preference: ContactPreference = ContactPreference.PHONE
    pricing: Pricing
    payment: Payment = Field(default_factory=Payment)
    status_history: list[StatusChange] = Field(default_factory=list)
    customer_notes: str | None = None
    special_requests: str | None = None
    idempotency_key: str | None = None
    rescheduled_from: UUID | None = None
    rescheduled_to: UUID | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_active(self) -> bool:
        """Whether the booking occupies calendar capacity."""
        return self.status in ACTIVE_STATUSES

    @property
    def is_modifiable(self) -> bool:
        """Line items, schedule, and notes may only change while pending/confirmed."""
        return self.status in MODIFIABLE_STATUSES

    @property
    def is_paid(self) -> bool:
        return self.payment.status == PaymentStatus.PAID

    @property
    def estimated_completion_time(self) -> datetime:
        """Naive local datetime at which the last line item should finish."""
        return self.interval.ends_at

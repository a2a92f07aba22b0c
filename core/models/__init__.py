"""Core domain models."""

from core.models.service import (
    ServiceDefinition, ServiceCategory, SeasonalAdjustment, PromotionalOffer,
    Season, VehicleType, MIN_SERVICE_DURATION_MINUTES,
)
from core.models.customer import Customer
from core.models.interval import TimeInterval
from core.models.booking import (
    Booking, BookingCreate, BookingUpdate, BookingStatus,
    ACTIVE_STATUSES, MODIFIABLE_STATUSES, TERMINAL_STATUSES,
    LineItem, LineItemRequest, Pricing, Payment, PaymentStatus, PaymentMethod,
    StatusChange, VehicleSnapshot, Priority, BookingSource, ContactPreference,
)
from core.models.dashboard import DashboardSummary, DailyStat

__all__ = [
    # Catalog
    "ServiceDefinition", "ServiceCategory", "SeasonalAdjustment", "PromotionalOffer",
    "Season", "VehicleType", "MIN_SERVICE_DURATION_MINUTES",
    # Customer
    "Customer",
    # Calendar
    "TimeInterval",
    # Booking
    "Booking", "BookingCreate", "BookingUpdate", "BookingStatus",
    "ACTIVE_STATUSES", "MODIFIABLE_STATUSES", "TERMINAL_STATUSES",
    "LineItem", "LineItemRequest", "Pricing", "Payment", "PaymentStatus", "PaymentMethod",
    "StatusChange", "VehicleSnapshot", "Priority", "BookingSource", "ContactPreference",
    # Dashboard
    "DashboardSummary", "DailyStat",
]

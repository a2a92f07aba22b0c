"""Service catalog domain models.

Prices are Decimal in major currency units and always carry two decimal
places once they pass through the pricing engine.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

MIN_SERVICE_DURATION_MINUTES = 15


class Season(str, Enum):
    """Season tag used by seasonal price adjustments."""

    SPRING = "spring"
    SUMMER = "summer"
    AUTUMN = "autumn"
    WINTER = "winter"


class VehicleType(str, Enum):
    """Vehicle classification used for eligibility."""

    SEDAN = "sedan"
    SUV = "suv"
    TRUCK = "truck"
    MOTORCYCLE = "motorcycle"
    BUS = "bus"
    VAN = "van"
    COUPE = "coupe"
    HATCHBACK = "hatchback"


class ServiceCategory(str, Enum):
    """What kind of work a service is."""

    MAINTENANCE = "maintenance"
    REPAIR = "repair"
    DIAGNOSTIC = "diagnostic"
    INSPECTION = "inspection"
    TIRE_SERVICE = "tire_service"
    OIL_CHANGE = "oil_change"
    BRAKE_SERVICE = "brake_service"
    ENGINE_SERVICE = "engine_service"
    ELECTRICAL = "electrical"
    AC_SERVICE = "ac_service"
    BATTERY = "battery"
    SUSPENSION = "suspension"
    EXHAUST = "exhaust"
    TRANSMISSION = "transmission"
    COOLING_SYSTEM = "cooling_system"
    FUEL_SYSTEM = "fuel_system"


class SeasonalAdjustment(BaseModel):
    """Multiplicative price factor applied during one season."""

    season: Season
    factor: Decimal = Field(..., gt=0)  # 1.10 = +10%
    is_active: bool = True


class PromotionalOffer(BaseModel):
    """Percentage discount valid over an inclusive date window."""

    title: str = Field(..., min_length=1, max_length=255)
    discount_percentage: Decimal = Field(..., ge=0, le=100)
    valid_from: date
    valid_to: date
    is_active: bool = True

    @model_validator(mode="after")
    def validate_window(self) -> "PromotionalOffer":
        """Validity window must not be inverted."""
        if self.valid_from > self.valid_to:
            raise ValueError("valid_from must be on or before valid_to")
        return self

    def applies_on(self, day: date) -> bool:
        """Whether this offer is active and valid on the given day."""
        return self.is_active and self.valid_from <= day <= self.valid_to


class ServiceDefinition(BaseModel):
    """Catalog entry as stored. Read-only to the scheduling core."""

    id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    category: ServiceCategory
    base_price: Decimal = Field(..., ge=0)
    currency: str = Field("SAR", min_length=3, max_length=3)
    duration_minutes: int = Field(..., ge=MIN_SERVICE_DURATION_MINUTES)
    vehicle_types: frozenset[VehicleType] = frozenset()
    seasonal_adjustments: list[SeasonalAdjustment] = Field(default_factory=list)
    promotions: list[PromotionalOffer] = Field(default_factory=list)
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def is_unrestricted(self) -> bool:
        """Empty vehicle-type set means any vehicle qualifies."""
        return not self.vehicle_types

"""
Catalog service for the service catalog (pricing/offerings).

Read-only view over the catalog store. Resolves services by id, answers
vehicle eligibility, and computes the effective unit price for a day with
at most one seasonal adjustment and at most one promotion applied.
"""

import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID

from core.errors import ServiceNotFound
from core.models import ServiceCategory, ServiceDefinition, Season, VehicleType
from core.stores.base import CatalogStore

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
_HUNDRED = Decimal("100")

_SEASON_BY_MONTH = {
    12: Season.WINTER, 1: Season.WINTER, 2: Season.WINTER,
    3: Season.SPRING, 4: Season.SPRING, 5: Season.SPRING,
    6: Season.SUMMER, 7: Season.SUMMER, 8: Season.SUMMER,
    9: Season.AUTUMN, 10: Season.AUTUMN, 11: Season.AUTUMN,
}


def round_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places, half-up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def season_for(day: date) -> Season:
    """Meteorological season of a calendar day."""
    return _SEASON_BY_MONTH[day.month]


class CatalogService:
    """Service for catalog lookups and effective pricing."""

    def __init__(self, store: CatalogStore):
        self.store = store

    def get_service(self, service_id: UUID) -> ServiceDefinition:
        """
        Get service by ID.

        Args:
            service_id: Service UUID

        Returns:
            The service definition

        Raises:
            ServiceNotFound: If no such service exists
        """
        service = self.store.find_service_by_id(service_id)
        if service is None:
            raise ServiceNotFound(service_id, field="service_id")
        return service

    def list_active(
        self,
        category: ServiceCategory | None = None,
        vehicle_type: VehicleType | None = None,
    ) -> list[ServiceDefinition]:
        """
        List active services, optionally narrowed to a category and a vehicle type.

        Returns:
            Active services ordered by name
        """
        services = self.store.list_active_services(category=category)
        if vehicle_type is not None:
            services = [s for s in services if self.is_eligible(s, vehicle_type)]
        return sorted(services, key=lambda s: s.name)

    @staticmethod
    def is_eligible(service: ServiceDefinition, vehicle_type: VehicleType | None) -> bool:
        """
        Whether a service can be performed on a vehicle type.

        Unrestricted services accept any vehicle, including an unknown type.
        """
        if service.is_unrestricted:
            return True
        return vehicle_type is not None and vehicle_type in service.vehicle_types

    @staticmethod
    def effective_price(
        service: ServiceDefinition,
        day: date,
        vehicle_type: VehicleType | None = None,
    ) -> Decimal:
        """
        Unit price of a service for a given day.

        Applies the first active adjustment for the day's season, then the
        single largest promotion valid on that day (promotions never stack).
        Vehicle type does not change the price today; it is accepted so
        callers always pass the full pricing context.

        Returns:
            Price rounded half-up to 2 decimal places
        """
        price = Decimal(service.base_price)

        season = season_for(day)
        adjustment = next(
            (a for a in service.seasonal_adjustments if a.is_active and a.season == season),
            None,
        )
        if adjustment is not None:
            price = price * adjustment.factor

        valid = [p.discount_percentage for p in service.promotions if p.applies_on(day)]
        if valid:
            price = price * (1 - max(valid) / _HUNDRED)

        return round_money(price)

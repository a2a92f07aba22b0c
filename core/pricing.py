"""
Pricing engine for booking line items.

Turns requested (service, quantity) pairs plus a pricing context into
snapshotted line items and a quote. Every monetary value is rounded at the
point it is computed, so pricing the same input twice is identical.
"""

import logging
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from core.errors import ServiceIneligible
from core.models import LineItem, LineItemRequest, Pricing, VehicleType
from core.services.catalog_service import CatalogService, round_money

logger = logging.getLogger(__name__)

_ZERO = Decimal("0.00")


class PricingContext(BaseModel):
    """Everything besides the line items that influences a price."""

    day: date
    vehicle_type: VehicleType | None = None
    discount_amount: Decimal = Field(Decimal("0"), ge=0)
    tax_rate: Decimal = Field(..., ge=0, le=1)
    currency: str


class Quote(BaseModel):
    """Priced line items, totals, and the summed duration."""

    line_items: list[LineItem]
    pricing: Pricing
    estimated_duration_minutes: int


def compute_totals(
    line_totals: list[Decimal],
    tax_rate: Decimal,
    discount_amount: Decimal,
    currency: str,
) -> Pricing:
    """
    Compute subtotal, tax, and total from line totals.

    total = subtotal + tax - discount, floored at zero.
    """
    subtotal = round_money(sum(line_totals, _ZERO))
    tax_amount = round_money(subtotal * tax_rate)
    discount = round_money(discount_amount)
    total = max(_ZERO, round_money(subtotal + tax_amount - discount))

    return Pricing(
        subtotal=subtotal,
        tax_rate=Decimal(tax_rate),
        tax_amount=tax_amount,
        discount_amount=discount,
        total_amount=total,
        currency=currency,
    )


class PricingEngine:
    """Prices line items against the catalog."""

    def __init__(self, catalog: CatalogService):
        self.catalog = catalog

    def quote(self, items: list[LineItemRequest], context: PricingContext) -> Quote:
        """
        Resolve, validate, and price line items.

        Args:
            items: Requested services and quantities
            context: Day, vehicle type, discount, tax rate, currency

        Returns:
            Quote with snapshotted line items

        Raises:
            ServiceNotFound: If a service id does not resolve
            ServiceIneligible: If a service is inactive, restricted to other
                vehicle types, or priced in another currency
        """
        priced: list[LineItem] = []

        for item in items:
            service = self.catalog.get_service(item.service_id)

            if not service.is_active:
                raise ServiceIneligible(
                    f"Service {service.id} is not active",
                    field="service_id", entity_id=service.id,
                )
            if not self.catalog.is_eligible(service, context.vehicle_type):
                vehicle = context.vehicle_type.value if context.vehicle_type else "unknown"
                raise ServiceIneligible(
                    f"Service {service.id} is not available for vehicle type {vehicle}",
                    field="vehicle_type", entity_id=service.id,
                )
            if service.currency != context.currency:
                raise ServiceIneligible(
                    f"Service {service.id} is priced in {service.currency}, not {context.currency}",
                    field="currency", entity_id=service.id,
                )

            unit_price = self.catalog.effective_price(service, context.day, context.vehicle_type)
            priced.append(LineItem(
                service_id=service.id,
                service_name=service.name,
                quantity=item.quantity,
                unit_price=unit_price,
                line_total=round_money(unit_price * item.quantity),
                duration_minutes=service.duration_minutes * item.quantity,
                notes=item.notes,
            ))

        pricing = compute_totals(
            [li.line_total for li in priced],
            context.tax_rate,
            context.discount_amount,
            context.currency,
        )

        return Quote(
            line_items=priced,
            pricing=pricing,
            estimated_duration_minutes=sum(li.duration_minutes for li in priced),
        )

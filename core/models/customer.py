"""Customer domain model (external lookup; only the fields the core reads or settles)."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.service import VehicleType


class Customer(BaseModel):
    """Customer as returned by the customer store."""

    id: UUID
    first_name: str
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    vehicle_type: VehicleType | None = None
    total_bookings: int = Field(0, ge=0)
    total_spent: Decimal = Field(Decimal("0.00"), ge=0)
    last_visit_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def display_name(self) -> str:
        """Full name for receipts and logs."""
        if self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name

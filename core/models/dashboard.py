"""Read-side aggregate models for the dashboard."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field


class DailyStat(BaseModel):
    """Bookings and settled revenue for one scheduled day."""

    day: date
    bookings: int
    revenue: Decimal


class DashboardSummary(BaseModel):
    """Aggregates over bookings scheduled within [start, end]."""

    start: date
    end: date
    total_bookings: int
    counts_by_status: dict[str, int]
    revenue_total: Decimal  # completed and paid bookings only
    currency: str
    pending_bookings: int
    today_bookings: int       # non-cancelled, scheduled today
    completed_today: int
    daily: list[DailyStat] = Field(default_factory=list)

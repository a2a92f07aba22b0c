"""Scheduling configuration."""

import os
from datetime import time
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from utils.clock import parse_clock_time

_ENV_PREFIX = "SCHEDULING_"


class SchedulingConfig(BaseModel):
    """
    Scheduling and pricing configuration.

    These are inputs to the slot calendar and pricing engine; nothing in the
    core hardcodes business hours, granularity, tax, or currency.
    """

    # Calendar
    business_hours_start: time = Field(
        default=time(9, 0),
        description="Earliest start time for any booking",
    )
    business_hours_end: time = Field(
        default=time(18, 0),
        description="Latest end time for any booking",
    )
    slot_granularity_minutes: int = Field(
        default=30,
        description="Step between candidate slot starts",
        ge=5,
        le=240,
    )
    default_resource: str = Field(
        default="center",
        description="Resource used when a request names no bay",
        min_length=1,
    )

    # Pricing
    tax_rate: Decimal = Field(
        default=Decimal("0.15"),
        description="Tax applied to the subtotal (0.15 = 15% VAT)",
        ge=0,
        le=1,
    )
    currency: str = Field(
        default="SAR",
        description="Currency all bookings are priced in",
        min_length=3,
        max_length=3,
    )

    # Concurrency
    lock_timeout_seconds: float = Field(
        default=10.0,
        description="How long a writer waits for a resource/day lock",
        gt=0,
        le=120,
    )

    @model_validator(mode="after")
    def validate_business_hours(self) -> "SchedulingConfig":
        """Business day must have a positive length."""
        if self.business_hours_start >= self.business_hours_end:
            raise ValueError("business_hours_start must be before business_hours_end")
        return self

    @classmethod
    def from_env(cls) -> "SchedulingConfig":
        """
        Build config from SCHEDULING_* environment variables.

        Unset variables keep their defaults; invalid values fail fast.
        """
        values: dict = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{_ENV_PREFIX}{name.upper()}")
            if raw is None:
                continue
            if name in ("business_hours_start", "business_hours_end"):
                values[name] = parse_clock_time(raw)
            else:
                values[name] = raw
        return cls(**values)

"""Time interval on a schedulable resource."""

from datetime import date, datetime, time, timedelta

from pydantic import BaseModel, Field, model_validator

from utils.clock import MINUTES_PER_DAY, minutes_since_midnight, time_from_minutes


class TimeInterval(BaseModel):
    """
    Half-open [start, end) wall-clock range on one resource and day.

    Intervals never cross midnight.
    """

    resource: str = Field(..., min_length=1, max_length=64)
    day: date
    start: time
    end: time

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_order(self) -> "TimeInterval":
        """Start must be strictly before end."""
        if self.start >= self.end:
            raise ValueError("Interval start must be before end")
        return self

    @classmethod
    def starting_at(cls, resource: str, day: date, start: time, duration_minutes: int) -> "TimeInterval":
        """
        Build an interval from a start time and a duration.

        Raises:
            ValueError: If duration is not positive or the interval would cross midnight
        """
        if duration_minutes <= 0:
            raise ValueError("Duration must be positive")
        end_minute = minutes_since_midnight(start) + duration_minutes
        if end_minute >= MINUTES_PER_DAY:
            raise ValueError("Interval cannot cross midnight")
        return cls(resource=resource, day=day, start=start, end=time_from_minutes(end_minute))

    @property
    def start_minute(self) -> int:
        return minutes_since_midnight(self.start)

    @property
    def end_minute(self) -> int:
        return minutes_since_midnight(self.end)

    @property
    def duration_minutes(self) -> int:
        return self.end_minute - self.start_minute

    @property
    def starts_at(self) -> datetime:
        """Naive local start datetime."""
        return datetime.combine(self.day, self.start)

    @property
    def ends_at(self) -> datetime:
        """Naive local end datetime."""
        return self.starts_at + timedelta(minutes=self.duration_minutes)

    def overlaps(self, other: "TimeInterval") -> bool:
        """
        Same resource, same day, and a.start < b.end and b.start < a.end.

        Touching intervals (one ends exactly when the other starts) do not overlap.
        """
        return (
            self.resource == other.resource
            and self.day == other.day
            and self.start_minute < other.end_minute
            and other.start_minute < self.end_minute
        )

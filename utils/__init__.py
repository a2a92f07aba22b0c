"""Utility modules for cross-cutting concerns."""

from utils.clock import (
    now_utc,
    today_utc,
    to_utc,
    parse_iso,
    parse_clock_time,
    minutes_since_midnight,
    time_from_minutes,
)
from utils.actor_context import (
    get_current_actor,
    set_current_actor,
    clear_current_actor,
    actor_context,
)

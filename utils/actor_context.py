"""Propagate the acting user/system name through the call stack using contextvars."""

from contextlib import contextmanager
from contextvars import ContextVar

SYSTEM_ACTOR = "system"

_current_actor: ContextVar[str | None] = ContextVar("current_actor", default=None)


def get_current_actor() -> str:
    """
    Get the actor recorded on audit entries.

    Falls back to "system" when no request or job has set one; bookings are
    also mutated by webhooks and event handlers that have no human actor.
    """
    actor = _current_actor.get()
    return actor if actor else SYSTEM_ACTOR


def set_current_actor(actor: str) -> None:
    """Set the current actor in context."""
    _current_actor.set(actor)


def clear_current_actor() -> None:
    """
    Clear the actor context.

    Must be called in a finally block to prevent context leakage.
    """
    _current_actor.set(None)


@contextmanager
def actor_context(actor: str):
    """
    Context manager for temporarily setting the actor.

    Example:
        with actor_context("front-desk"):
            scheduling.cancel_booking(booking_id, reason="Customer called")
    """
    previous = _current_actor.get()
    set_current_actor(actor)
    try:
        yield
    finally:
        if previous is None:
            clear_current_actor()
        else:
            set_current_actor(previous)

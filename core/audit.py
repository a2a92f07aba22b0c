"""
Universal audit trail for booking mutations.

Every create, field update, status transition, and payment result is
logged here in addition to the booking's own status history. The audit log
is:
- Append-only (entries never modified or deleted)
- Actor-attributed (who made the change)
- Detailed (captures old and new values)
"""

from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from core.stores.base import AuditEntry, BookingStore
from utils.actor_context import get_current_actor
from utils.clock import now_utc


class AuditAction(Enum):
    """Type of change made to an entity."""

    CREATE = "create"
    UPDATE = "update"
    TRANSITION = "transition"
    PAYMENT = "payment"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two entity states.

    Args:
        old: Previous state of entity
        new: New state of entity
        exclude_fields: Fields to ignore (defaults to {"updated_at"})

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields or {"updated_at"}
    changes = {}

    all_keys = set(old.keys()) | set(new.keys())
    for key in all_keys:
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


class AuditLogger:
    """
    Writes audit entries through the booking store.

    Always pass model_dump(mode="json") output so UUIDs, Decimals, and
    datetimes are JSON-compatible.

    Usage:
        audit = AuditLogger(store)

        audit.log_change(
            entity_type="booking",
            entity_id=booking.id,
            action=AuditAction.UPDATE,
            changes=compute_changes(old.model_dump(mode="json"), new.model_dump(mode="json")),
        )

        history = audit.get_entity_history("booking", booking.id)
    """

    def __init__(self, store: BookingStore):
        self.store = store

    def log_change(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        changes: dict[str, Any],
        actor: str | None = None
    ) -> AuditEntry:
        """
        Log an entity change.

        Args:
            entity_type: Type of entity ("booking")
            entity_id: ID of the entity
            action: The action performed
            changes: The changes made (format depends on action)
            actor: Who made the change (defaults to current context)

        Changes format by action:
        - CREATE: {"created": {full entity data}}
        - UPDATE: {"field": {"old": old_val, "new": new_val}, ...}
        - TRANSITION: {"status": {"old": ..., "new": ...}, "reason": ...}
        - PAYMENT: {"payment": {"old": {...}, "new": {...}}}
        """
        entry = AuditEntry(
            id=uuid4(),
            actor=actor or get_current_actor(),
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            changes=changes,
            created_at=now_utc(),
        )
        self.store.append_audit(entry)
        return entry

    def get_entity_history(self, entity_type: str, entity_id: UUID) -> list[AuditEntry]:
        """
        Get full audit history for an entity.

        Returns:
            List of audit entries, newest first.
        """
        return self.store.list_audit(entity_type, entity_id)

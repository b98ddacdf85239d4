"""
Append-only audit trail for ledger mutations.

Every cycle creation, payment, metadata patch and deletion is logged to the
`auditLog` table of the same record store that holds the cycles. Entries are
never modified or deleted.
"""

from enum import Enum
from typing import Any

from clients.record_store import RecordStore
from utils.timezone import now_utc

AUDIT_TABLE = "auditLog"


class AuditAction(Enum):
    """Type of change made to an entity."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


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
        exclude_fields: Fields to ignore (defaults to {"installments"})

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields if exclude_fields is not None else {"installments"}
    changes = {}

    all_keys = set(old.keys()) | set(new.keys())
    for key in sorted(all_keys):
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


class AuditLogger:
    """
    Audit trail writer and reader.

    Pass JSON-ready values (model_dump(mode="json")) so entries survive
    every store backend.

    Usage:
        audit = AuditLogger(store)

        audit.log_change(
            entity_type="billing_cycle",
            entity_id=cycle.id,
            action=AuditAction.CREATE,
            changes={"created": cycle.to_row()}
        )

        history = audit.get_entity_history("billing_cycle", cycle.id)
    """

    def __init__(self, store: RecordStore, actor: str = "operator"):
        self.store = store
        self.actor = actor

    def log_change(
        self,
        entity_type: str,
        entity_id: int | str,
        action: AuditAction,
        changes: dict[str, Any],
        actor: str | None = None
    ) -> None:
        """
        Log an entity change.

        Args:
            entity_type: Type of entity ("billing_cycle", "customer", ...)
            entity_id: ID of the entity
            action: The action performed (CREATE, UPDATE, DELETE)
            changes: The changes made (format depends on action)
            actor: Who made the change (defaults to the logger's actor)

        Changes format by action:
        - CREATE: {"created": {full entity data}}
        - UPDATE: {"field": {"old": old_val, "new": new_val}, ...}
        - DELETE: {"deleted": {full entity data at deletion}}
        """
        self.store.add(AUDIT_TABLE, {
            "actor": actor or self.actor,
            "entityType": entity_type,
            "entityId": entity_id,
            "action": action.value,
            "changes": changes,
            "createdAt": now_utc().isoformat(),
        })

    def get_entity_history(self, entity_type: str, entity_id: int | str) -> list[dict[str, Any]]:
        """
        Get full audit history for an entity.

        Returns:
            List of audit entries, newest first.
        """
        entries = [
            e for e in self.store.query(AUDIT_TABLE, "entityId", entity_id)
            if e.get("entityType") == entity_type
        ]
        return sorted(entries, key=lambda e: e["id"], reverse=True)

    def get_recent_activity(self, limit: int = 100) -> list[dict[str, Any]]:
        """Most recent audit entries across all entities, newest first."""
        entries = self.store.list(AUDIT_TABLE)
        return sorted(entries, key=lambda e: e["id"], reverse=True)[:limit]

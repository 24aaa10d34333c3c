"""
Universal audit trail for all record changes.

Every mutation to every record is logged here. The audit log is:
- Append-only (entries never modified or deleted)
- User-attributed (who made the change)
- Detailed (captures old and new values)

Entries live in the document store's "audit_log" collection.
"""

from enum import Enum
from uuid import UUID, uuid4
from typing import Any

from clients.document_store import DocumentStore
from utils.user_context import get_current_user_id
from utils.timezone import now_utc

AUDIT_COLLECTION = "audit_log"


class AuditAction(Enum):
    """Type of change made to a record."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two record states.

    Args:
        old: Previous state of record
        new: New state of record
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
    Universal audit trail for all record changes.

    IMPORTANT: Always use model_dump(mode="json") when passing Pydantic models
    so UUIDs, Decimals and datetimes are stored as JSON-compatible strings.

    Usage:
        audit = AuditLogger(store)

        audit.log_change(
            entity_type="agent",
            entity_id=agent.id,
            action=AuditAction.CREATE,
            changes={"created": agent.model_dump(mode="json")}
        )

        history = audit.get_entity_history("agent", agent.id)
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    def log_change(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        changes: dict[str, Any],
        user_id: UUID | None = None
    ) -> None:
        """
        Log a record change.

        Args:
            entity_type: Type of record ("agent", "invoice", etc.)
            entity_id: ID of the record
            action: The action performed (CREATE, UPDATE, DELETE)
            changes: The changes made (format depends on action)
            user_id: User who made change (defaults to current context)

        Changes format by action:
        - CREATE: {"created": {full record data}}
        - UPDATE: {"field": {"old": old_val, "new": new_val}, ...}
        - DELETE: {"deleted": {full record data at deletion}}
        """
        if user_id is None:
            user_id = get_current_user_id()

        self.store.insert(
            AUDIT_COLLECTION,
            {
                "id": str(uuid4()),
                "user_id": str(user_id),
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
                "changes": changes,
                "created_at": now_utc().isoformat(),
            },
        )

    def get_entity_history(
        self,
        entity_type: str,
        entity_id: UUID
    ) -> list[dict[str, Any]]:
        """
        Get full audit history for a record, newest first.
        """
        return self.store.find(
            AUDIT_COLLECTION,
            {"entity_type": entity_type, "entity_id": str(entity_id)},
            sort="created_at",
            descending=True,
        )

    def get_user_activity(
        self,
        user_id: UUID | None = None,
        limit: int = 100
    ) -> list[dict[str, Any]]:
        """
        Get recent activity by user, newest first.

        Args:
            user_id: User to get activity for (defaults to current context)
            limit: Maximum entries to return
        """
        if user_id is None:
            user_id = get_current_user_id()

        return self.store.find(
            AUDIT_COLLECTION,
            {"user_id": str(user_id)},
            sort="created_at",
            descending=True,
            limit=limit,
        )

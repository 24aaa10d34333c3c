"""
Shared plumbing for owner-scoped record services.

Every query filters on created_by == current principal, so a record owned
by someone else looks exactly like a missing one. Subclasses declare their
collection, model and field permissions and add their own operations.
"""

import logging
from typing import Any, Generic, TypeVar
from uuid import UUID, uuid4

from pydantic import BaseModel, ValidationError

from clients.document_store import DocumentStore, DuplicateKeyError
from core.audit import AuditLogger, AuditAction, compute_changes
from core.event_bus import EventBus
from core.exceptions import ConflictError, InvalidInputError, NotFoundError
from core.identifiers import IdentifierGenerator
from core.permissions import FieldPermissions, apply_patch
from utils.timezone import now_utc
from utils.user_context import get_current_user_id, owned_by_current_user

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def describe_validation_error(error: ValidationError) -> str:
    """One-line summary of a pydantic ValidationError."""
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "record"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


class OwnedRecordService(Generic[M]):
    """Load/save/list/delete for one collection of owned records."""

    collection: str
    entity_type: str
    model: type[M]
    permissions: FieldPermissions

    def __init__(
        self,
        store: DocumentStore,
        audit: AuditLogger,
        event_bus: EventBus | None = None,
    ):
        self.store = store
        self.audit = audit
        self.event_bus = event_bus
        self.identifiers = IdentifierGenerator(store)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _owner_filters(self, **filters: Any) -> dict[str, Any]:
        return owned_by_current_user(filters)

    def _validate(self, data: dict[str, Any]) -> M:
        try:
            return self.model.model_validate(data)
        except ValidationError as e:
            raise InvalidInputError(
                f"Invalid {self.entity_type.replace('_', ' ')}: {describe_validation_error(e)}"
            ) from e

    def _from_document(self, document: dict[str, Any]) -> M:
        """Hook for derived state evaluated on load."""
        return self.model.model_validate(document)

    def _new_record(self, data: dict[str, Any]) -> M:
        now = now_utc()
        return self._validate({
            **data,
            "id": uuid4(),
            "created_by": get_current_user_id(),
            "created_at": now,
            "updated_at": now,
        })

    def _conflict_from(self, error: DuplicateKeyError) -> ConflictError:
        return ConflictError(
            f"A {self.entity_type.replace('_', ' ')} with {error.field} "
            f"'{error.value}' already exists"
        )

    def _insert(self, record: M) -> M:
        try:
            self.store.insert(self.collection, record.model_dump(mode="json"))
        except DuplicateKeyError as e:
            raise self._conflict_from(e) from e

        self._audit_created(record)
        return record

    def _insert_numbered(self, prefix: str, field: str, data: dict[str, Any]) -> M:
        """Insert with a generated (or caller-supplied) human-readable number."""

        def insert(identifier: str) -> M:
            record = self._new_record({**data, field: identifier})
            self.store.insert(self.collection, record.model_dump(mode="json"))
            return record

        try:
            record = self.identifiers.create_with_identifier(
                self.collection, prefix, field, data.get(field), insert
            )
        except DuplicateKeyError as e:
            raise self._conflict_from(e) from e

        self._audit_created(record)
        return record

    def _audit_created(self, record: M) -> None:
        self.audit.log_change(
            entity_type=self.entity_type,
            entity_id=record.id,
            action=AuditAction.CREATE,
            changes={"created": record.model_dump(mode="json")},
        )

    def _save(self, current: M, updated: M) -> M:
        """Persist updated (a modified copy of current) and audit the diff."""
        updated.updated_at = now_utc()
        try:
            self.store.replace(self.collection, updated.model_dump(mode="json"))
        except DuplicateKeyError as e:
            raise self._conflict_from(e) from e

        changes = compute_changes(
            current.model_dump(mode="json"),
            updated.model_dump(mode="json"),
        )
        if changes:
            self.audit.log_change(
                entity_type=self.entity_type,
                entity_id=updated.id,
                action=AuditAction.UPDATE,
                changes=changes,
            )
        return updated

    def _patched(self, current: M, patch: dict[str, Any]) -> M:
        """Apply a caller's patch under the entity's field permissions."""
        merged = apply_patch(self.permissions, current.model_dump(mode="json"), patch)
        return self._validate(merged)

    def _remove(self, record: M) -> None:
        self.store.delete(self.collection, str(record.id))
        self.audit.log_change(
            entity_type=self.entity_type,
            entity_id=record.id,
            action=AuditAction.DELETE,
            changes={"deleted": record.model_dump(mode="json")},
        )

    def _publish(self, event) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event)

    # -------------------------------------------------------------------------
    # Generic operations
    # -------------------------------------------------------------------------

    def find_by_id(self, record_id: UUID | str) -> M | None:
        """Owned record by ID, or None."""
        document = self.store.find_one(
            self.collection, self._owner_filters(id=str(record_id))
        )
        if document is None:
            return None
        return self._from_document(document)

    def get_by_id(self, record_id: UUID | str) -> M:
        """
        Owned record by ID.

        Raises:
            NotFoundError: If missing or owned by another principal
        """
        record = self.find_by_id(record_id)
        if record is None:
            raise NotFoundError(self.entity_type, record_id)
        return record

    def list_all(self, filters: dict[str, Any] | None = None) -> list[M]:
        """Owned records matching equality filters, newest first."""
        documents = self.store.find(
            self.collection,
            self._owner_filters(**(filters or {})),
            sort="created_at",
            descending=True,
        )
        return [self._from_document(doc) for doc in documents]

    def update(self, record_id: UUID | str, patch: dict[str, Any]) -> M:
        """
        Apply a field-permission-checked patch.

        Raises:
            NotFoundError: If missing or not owned
            ImmutableFieldError: If the patch changes a protected field
            InvalidInputError: If the result fails validation
        """
        current = self.get_by_id(record_id)
        updated = self._patched(current, patch)
        saved = self._save(current, updated)
        logger.info(f"Updated {self.entity_type} {saved.id}")
        return saved

    def delete(self, record_id: UUID | str) -> None:
        """
        Delete an owned record.

        Raises:
            NotFoundError: If missing or not owned
        """
        record = self.get_by_id(record_id)
        self._remove(record)
        logger.info(f"Deleted {self.entity_type} {record.id}")

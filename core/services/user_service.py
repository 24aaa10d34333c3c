"""
User (business account) service.

Users are not owned records: each account is its own principal. Lookups
here run before a user context exists (registration, login), so nothing
in this module reads the current user.
"""

import logging
from typing import Any, Protocol
from uuid import UUID, uuid4

from pydantic import ValidationError

from clients.document_store import DocumentStore, DuplicateKeyError
from core.audit import AuditAction, AuditLogger, compute_changes
from core.exceptions import ConflictError, InvalidInputError, NotFoundError
from core.models import (
    User, UserCreate, USER_PERMISSIONS, AGENT_PERMISSIONS, CUSTOMER_PERMISSIONS,
    EQUIPMENT_PERMISSIONS, INVOICE_PERMISSIONS, QUOTATION_PERMISSIONS,
    SERVICE_CALL_PERMISSIONS,
)
from core.models.user import PASSWORD_MIN_LENGTH
from core.permissions import apply_patch
from core.services.base import describe_validation_error
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"

ALL_PERMISSIONS = (
    USER_PERMISSIONS,
    AGENT_PERMISSIONS,
    CUSTOMER_PERMISSIONS,
    SERVICE_CALL_PERMISSIONS,
    EQUIPMENT_PERMISSIONS,
    QUOTATION_PERMISSIONS,
    INVOICE_PERMISSIONS,
)


class PasswordHasher(Protocol):
    def hash(self, password: str) -> str: ...

    def verify(self, password: str, password_hash: str) -> bool: ...


def field_permissions() -> dict[str, dict[str, list[str]]]:
    """Immutable and editable field names for every entity type."""
    return {p.entity_type: p.as_dict() for p in ALL_PERMISSIONS}


class UserService:
    """Service for business accounts."""

    def __init__(self, store: DocumentStore, audit: AuditLogger, hasher: PasswordHasher):
        self.store = store
        self.audit = audit
        self.hasher = hasher

    def _validate(self, data: dict[str, Any]) -> User:
        try:
            return User.model_validate(data)
        except ValidationError as e:
            raise InvalidInputError(f"Invalid user: {describe_validation_error(e)}") from e

    def _hash_password(self, password: Any) -> str:
        if not isinstance(password, str) or len(password) < PASSWORD_MIN_LENGTH:
            raise InvalidInputError(
                f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
            )
        return self.hasher.hash(password)

    def register(self, data: UserCreate) -> User:
        """
        Create an account.

        Args:
            data: Registration data; the password is stored only as a hash

        Returns:
            Created user

        Raises:
            ConflictError: If the user name or email is already registered
        """
        now = now_utc()
        values = data.model_dump(exclude={"password"})
        user = self._validate({
            **values,
            "id": uuid4(),
            "email": values["email"].lower(),
            "password_hash": self._hash_password(data.password),
            "created_at": now,
            "updated_at": now,
        })

        try:
            self.store.insert(USERS_COLLECTION, user.model_dump(mode="json"))
        except DuplicateKeyError as e:
            raise ConflictError(f"A user with this {e.field.replace('_', ' ')} already exists") from e

        self.audit.log_change(
            entity_type="user",
            entity_id=user.id,
            action=AuditAction.CREATE,
            changes={"created": user.public()},
            user_id=user.id,
        )
        logger.info(f"User registered: {user.user_name}")
        return user

    def find_by_id(self, user_id: UUID | str) -> User | None:
        document = self.store.find_one(USERS_COLLECTION, {"id": str(user_id)})
        return User.model_validate(document) if document else None

    def get_by_id(self, user_id: UUID | str) -> User:
        """
        Raises:
            NotFoundError: If no such user
        """
        user = self.find_by_id(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    def get_by_email(self, email: str) -> User | None:
        """Find a user by email (case-insensitive)."""
        document = self.store.find_one(USERS_COLLECTION, {"email": email.lower()})
        return User.model_validate(document) if document else None

    def _save(self, current: User, updated: User) -> User:
        updated.updated_at = now_utc()
        try:
            self.store.replace(USERS_COLLECTION, updated.model_dump(mode="json"))
        except DuplicateKeyError as e:
            raise ConflictError(f"A user with this {e.field.replace('_', ' ')} already exists") from e

        changes = compute_changes(
            current.public(), updated.public(), exclude_fields={"updated_at", "last_login_at"}
        )
        if updated.password_hash != current.password_hash:
            changes["password"] = {"old": "***", "new": "***"}
        if changes:
            self.audit.log_change(
                entity_type="user",
                entity_id=updated.id,
                action=AuditAction.UPDATE,
                changes=changes,
                user_id=updated.id,
            )
        return updated

    def update_profile(self, user_id: UUID | str, patch: dict[str, Any]) -> User:
        """
        Update the account's own profile.

        Args:
            user_id: Account to update
            patch: Requested changes. A password is re-hashed.

        Raises:
            NotFoundError: If no such user
            ImmutableFieldError: If the patch changes user_name, business
                name, registration number or super-user flag
            InvalidInputError: If the password is too short
        """
        current = self.get_by_id(user_id)
        merged = apply_patch(USER_PERMISSIONS, current.model_dump(mode="json"), patch)

        if "password" in merged:
            merged["password_hash"] = self._hash_password(merged.pop("password"))
        if isinstance(merged.get("email"), str):
            merged["email"] = merged["email"].lower()

        saved = self._save(current, self._validate(merged))
        logger.info(f"Profile updated: {saved.user_name}")
        return saved

    def record_login(self, user: User) -> User:
        updated = user.model_copy(deep=True)
        updated.last_login_at = now_utc()
        return self._save(user, updated)

    def field_permissions(self) -> dict[str, dict[str, list[str]]]:
        return field_permissions()

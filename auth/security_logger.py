"""Security event logging for the auth audit trail.

Append-only log in the document store's security_events collection.
Passwords and tokens are never recorded.
"""

import logging
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from clients.document_store import DocumentStore
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

SECURITY_COLLECTION = "security_events"


class SecurityEvent(Enum):
    """Auth security event types."""

    USER_REGISTERED = "user_registered"
    REGISTRATION_REJECTED = "registration_rejected"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    LOGIN_INACTIVE = "login_inactive"
    RATE_LIMITED = "rate_limited"
    PROFILE_UPDATED = "profile_updated"


class SecurityLogger:
    """Append-only security event logger."""

    def __init__(self, store: DocumentStore):
        self._store = store

    def log(
        self,
        event: SecurityEvent,
        email: str | None = None,
        user_id: UUID | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record a security event."""
        self._store.insert(
            SECURITY_COLLECTION,
            {
                "id": str(uuid4()),
                "event_type": event.value,
                "email": email.lower() if email else None,
                "user_id": str(user_id) if user_id else None,
                "ip_address": ip_address,
                "user_agent": user_agent,
                "details": details,
                "created_at": now_utc().isoformat(),
            },
        )
        logger.info(f"Security event {event.value} (email={email}, ip={ip_address})")

    def get_recent_events(
        self,
        email: str | None = None,
        user_id: UUID | None = None,
        event_type: SecurityEvent | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Query recent security events with optional filters, newest first."""
        filters: dict[str, Any] = {}
        if email:
            filters["email"] = email.lower()
        if user_id:
            filters["user_id"] = str(user_id)
        if event_type:
            filters["event_type"] = event_type.value

        return self._store.find(
            SECURITY_COLLECTION,
            filters,
            sort="created_at",
            descending=True,
            limit=limit,
        )

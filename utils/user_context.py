"""Propagate the authenticated business account through the call stack.

Every agent, customer, equipment, service call, quotation and invoice
belongs to the account that created it (its "created_by"). The auth
middleware binds that account for the duration of a request; record
services read it back to scope every query and to stamp new records.
Records owned by another account are invisible.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any
from uuid import UUID

_current_user_id: ContextVar[UUID | None] = ContextVar("current_user_id", default=None)

OWNER_FIELD = "created_by"


def get_current_user_id() -> UUID:
    """
    Get the account the current request acts for.

    Raises RuntimeError if no account is bound. Record services never fall
    back to an unscoped query.
    """
    user_id = _current_user_id.get()
    if user_id is None:
        raise RuntimeError(
            "No user context set: record access requires an authenticated account"
        )
    return user_id


def set_current_user_id(user_id: UUID) -> None:
    """Bind the account. Called by the auth middleware once the bearer token checks out."""
    _current_user_id.set(user_id)


def clear_current_user_id() -> None:
    """Unbind the account. The auth middleware calls this in a finally block."""
    _current_user_id.set(None)


def owned_by_current_user(filters: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Store filters restricted to the current account's records.

    Filters whose value is None are dropped, so optional query parameters
    can be passed straight through.
    """
    scoped = {k: v for k, v in (filters or {}).items() if v is not None}
    scoped[OWNER_FIELD] = str(get_current_user_id())
    return scoped


@contextmanager
def user_context(user_id: UUID):
    """
    Act as another account for the duration of the block.

    Event handlers use this to touch records in the owner's scope, and
    registration uses it so a new account owns its own audit entries.
    The previous binding (or none) is restored on exit.

    Example:
        with user_context(call.created_by):
            agent_service.record_job_attended(call.assigned_agent)
    """
    token = _current_user_id.set(user_id)
    try:
        yield
    finally:
        _current_user_id.reset(token)

"""
Typed failures raised by the record services.

Every failure is local and caller-correctable; none is retried. The HTTP
layer maps each class to a status code in api.errors.
"""

from typing import Any, Iterable


class RecordError(Exception):
    """Base class for record service failures."""


class NotFoundError(RecordError):
    """
    Record absent or owned by another principal.

    The two cases are deliberately indistinguishable to the caller.
    """

    def __init__(self, entity_type: str, record_id: Any):
        self.entity_type = entity_type
        self.record_id = record_id
        super().__init__(f"{entity_type.replace('_', ' ').capitalize()} {record_id} not found")


class ForbiddenError(RecordError):
    """Caller may not perform this mutation."""


class ImmutableFieldError(ForbiddenError):
    """Patch tried to change fields that are fixed after creation."""

    def __init__(self, entity_type: str, fields: Iterable[str]):
        self.entity_type = entity_type
        self.fields = sorted(fields)
        super().__init__(
            f"Cannot modify protected {entity_type} fields: {', '.join(self.fields)}"
        )


class InvalidInputError(RecordError):
    """Missing or malformed input. The caller must fix the request."""


class ConflictError(RecordError):
    """Operation is illegal in the record's current state."""


class InvalidTransitionError(ConflictError):
    """Requested status change is not in the transition table."""

    def __init__(self, entity_type: str, current: str, requested: str):
        self.entity_type = entity_type
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move {entity_type} from '{current}' to '{requested}'"
        )


class InvoiceExistsError(ConflictError):
    """The service call already has an invoice. Carries that invoice."""

    def __init__(self, invoice: Any):
        self.invoice = invoice
        super().__init__(
            f"Invoice {invoice.invoice_number} already exists for this service call"
        )

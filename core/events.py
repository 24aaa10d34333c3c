"""
Domain events for field-service records.

Immutable event objects that represent state changes. A service publishes
what happened, and handlers react without the publisher knowing who's
listening.

Event Categories:
- ServiceCallEvent: work order lifecycle (completed)
- QuotationEvent: quotation lifecycle (converted)
- InvoiceEvent: invoice lifecycle (paid)

Events carry the full domain object so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """Base class for all domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


# =============================================================================
# SERVICE CALL EVENTS
# =============================================================================


@dataclass(frozen=True)
class ServiceCallEvent(DomainEvent):
    """Events related to service call lifecycle."""
    pass


@dataclass(frozen=True)
class ServiceCallCompleted(ServiceCallEvent):
    """A service call reached 'completed' for the first time."""
    service_call: Any = None  # ServiceCall; Any to avoid circular import

    @classmethod
    def create(cls, service_call: Any) -> "ServiceCallCompleted":
        return cls(service_call=service_call)


# =============================================================================
# QUOTATION EVENTS
# =============================================================================


@dataclass(frozen=True)
class QuotationEvent(DomainEvent):
    """Events related to quotation lifecycle."""
    pass


@dataclass(frozen=True)
class QuotationConverted(QuotationEvent):
    """An approved quotation became a service call."""
    quotation: Any = None
    service_call: Any = None

    @classmethod
    def create(cls, quotation: Any, service_call: Any) -> "QuotationConverted":
        return cls(quotation=quotation, service_call=service_call)


# =============================================================================
# INVOICE EVENTS
# =============================================================================


@dataclass(frozen=True)
class InvoiceEvent(DomainEvent):
    """Events related to invoice lifecycle."""
    pass


@dataclass(frozen=True)
class InvoicePaid(InvoiceEvent):
    """Invoice balance reached zero."""
    invoice: Any = None

    @classmethod
    def create(cls, invoice: Any) -> "InvoicePaid":
        return cls(invoice=invoice)

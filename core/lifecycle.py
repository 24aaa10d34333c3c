"""
Status workflows and derived state for service calls, quotations and invoices.

Pure functions over model instances: no storage, no logging. The record
services call these on every save (and, for quotations and invoices, on
every load) so derived state is never stale.
"""

from datetime import datetime
from decimal import Decimal

from core.exceptions import ConflictError, InvalidInputError, InvalidTransitionError
from core.models.invoice import Invoice, PaymentStatus
from core.models.quotation import Quotation, QuotationStatus
from core.models.service_call import ServiceCallStatus
from utils.timezone import now_utc

# =============================================================================
# SERVICE CALL
# =============================================================================

_SC = ServiceCallStatus

# Status changes accepted through the generic update. INVOICED is entered
# and left only by invoice creation and deletion.
SERVICE_CALL_TRANSITIONS: dict[ServiceCallStatus, frozenset[ServiceCallStatus]] = {
    _SC.PENDING: frozenset({_SC.OPEN, _SC.ASSIGNED, _SC.IN_PROGRESS, _SC.CANCELLED}),
    _SC.OPEN: frozenset({_SC.ASSIGNED, _SC.IN_PROGRESS, _SC.CANCELLED}),
    _SC.ASSIGNED: frozenset({_SC.OPEN, _SC.IN_PROGRESS, _SC.ON_HOLD, _SC.CANCELLED}),
    _SC.IN_PROGRESS: frozenset({_SC.ON_HOLD, _SC.COMPLETED, _SC.CANCELLED}),
    _SC.ON_HOLD: frozenset({_SC.IN_PROGRESS, _SC.CANCELLED}),
    _SC.COMPLETED: frozenset({_SC.IN_PROGRESS}),
    _SC.CANCELLED: frozenset(),
    _SC.INVOICED: frozenset(),
}

INITIAL_SERVICE_CALL_STATUSES = frozenset({_SC.PENDING, _SC.OPEN, _SC.ASSIGNED})

RATEABLE_SERVICE_CALL_STATUSES = frozenset({_SC.COMPLETED, _SC.INVOICED})


def check_service_call_transition(
    current: ServiceCallStatus, requested: ServiceCallStatus
) -> None:
    """
    Validate a status change requested through update.

    Re-applying the current status is always allowed (no-op).

    Raises:
        InvalidTransitionError: If the move is not in the table
    """
    if current == requested:
        return
    if requested not in SERVICE_CALL_TRANSITIONS[current]:
        raise InvalidTransitionError("service call", current.value, requested.value)


def check_rateable(status: ServiceCallStatus, already_rated: bool) -> None:
    if status not in RATEABLE_SERVICE_CALL_STATUSES:
        raise ConflictError(
            f"Only completed or invoiced service calls can be rated (status is '{status.value}')"
        )
    if already_rated:
        raise ConflictError("Service call has already been rated")


def rolling_average(average: float, count: int, rating: int) -> tuple[float, int]:
    """
    Fold one rating into a running mean.

    Returns (new_average, new_count).
    """
    new_count = count + 1
    return (average * count + rating) / new_count, new_count


# =============================================================================
# QUOTATION
# =============================================================================

_Q = QuotationStatus

# Statuses accepted by the explicit status operation
QUOTATION_SETTABLE_STATUSES = frozenset(
    {_Q.DRAFT, _Q.SENT, _Q.APPROVED, _Q.REJECTED, _Q.EXPIRED}
)

# Line items and VAT rate are frozen once the customer has answered
QUOTATION_PRICING_LOCKED = frozenset({_Q.APPROVED, _Q.REJECTED, _Q.CONVERTED})

QUOTATION_UNDELETABLE = frozenset({_Q.APPROVED, _Q.CONVERTED})

_STATUS_DATE_FIELD = {
    _Q.SENT: "sent_date",
    _Q.APPROVED: "approved_date",
    _Q.REJECTED: "rejected_date",
}


def resolve_quotation_expiry(quotation: Quotation, now: datetime | None = None) -> bool:
    """
    Move a sent quotation past its valid_until date to EXPIRED.

    Returns True if the status changed.
    """
    now = now or now_utc()
    if quotation.status == _Q.SENT and quotation.valid_until < now:
        quotation.status = _Q.EXPIRED
        return True
    return False


def apply_quotation_status(
    quotation: Quotation, requested: QuotationStatus, now: datetime | None = None
) -> None:
    """
    Set an explicitly requested status, stamping its date the first time.

    Raises:
        ConflictError: If the quotation is already converted
        InvalidInputError: If the status cannot be set directly
    """
    if quotation.status == _Q.CONVERTED:
        raise ConflictError("Converted quotations cannot change status")
    if requested not in QUOTATION_SETTABLE_STATUSES:
        raise InvalidInputError(
            f"Invalid quotation status '{requested.value}'. "
            f"Allowed: {', '.join(sorted(s.value for s in QUOTATION_SETTABLE_STATUSES))}"
        )

    quotation.status = requested
    date_field = _STATUS_DATE_FIELD.get(requested)
    if date_field and getattr(quotation, date_field) is None:
        setattr(quotation, date_field, now or now_utc())


def check_quotation_editable(quotation: Quotation, changes_pricing: bool) -> None:
    """Pricing (line items and VAT rate) is fixed once the customer has answered."""
    if quotation.status == _Q.CONVERTED:
        raise ConflictError("Converted quotations cannot be edited")
    if changes_pricing and quotation.status in QUOTATION_PRICING_LOCKED:
        raise ConflictError(
            f"Line items and VAT rate cannot be changed on a {quotation.status.value} quotation"
        )


def check_quotation_convertible(quotation: Quotation) -> None:
    if quotation.status != _Q.APPROVED:
        raise ConflictError(
            f"Only approved quotations can be converted (status is '{quotation.status.value}')"
        )


def check_quotation_deletable(quotation: Quotation) -> None:
    if quotation.status in QUOTATION_UNDELETABLE:
        raise ConflictError(f"Cannot delete a {quotation.status.value} quotation")


# =============================================================================
# INVOICE
# =============================================================================


def derive_payment_state(invoice: Invoice, now: datetime | None = None) -> None:
    """
    Recompute paid_amount, balance, payment_status and paid_date in place.

    paid_amount is the sum of recorded payments. Status is unpaid (nothing
    paid), paid (fully paid; paid_date stamped once) or partial, and
    unpaid/partial become overdue once due_date has passed.
    """
    now = now or now_utc()

    invoice.paid_amount = sum((p.amount for p in invoice.payments), Decimal("0"))
    invoice.balance = invoice.total_amount - invoice.paid_amount

    if invoice.paid_amount == 0:
        status = PaymentStatus.UNPAID
    elif invoice.paid_amount >= invoice.total_amount:
        status = PaymentStatus.PAID
        if invoice.paid_date is None:
            invoice.paid_date = now
    else:
        status = PaymentStatus.PARTIAL

    if status != PaymentStatus.PAID and invoice.due_date < now:
        status = PaymentStatus.OVERDUE

    invoice.payment_status = status


def check_payment_amount(invoice: Invoice, amount: Decimal) -> None:
    if amount <= 0:
        raise InvalidInputError("Payment amount must be greater than 0")
    if amount > invoice.balance:
        raise InvalidInputError(
            f"Payment amount ({amount}) exceeds invoice balance ({invoice.balance})"
        )

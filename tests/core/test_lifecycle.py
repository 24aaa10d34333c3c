"""Tests for status workflows and derived state."""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from core.exceptions import ConflictError, InvalidInputError, InvalidTransitionError
from core.lifecycle import (
    apply_quotation_status,
    check_payment_amount,
    check_quotation_convertible,
    check_quotation_deletable,
    check_quotation_editable,
    check_rateable,
    check_service_call_transition,
    derive_payment_state,
    resolve_quotation_expiry,
    rolling_average,
)
from core.models import (
    Invoice, Payment, PaymentMethod, PaymentStatus,
    Quotation, QuotationStatus, ServiceCallStatus,
)
from utils.timezone import now_utc


def _quotation(**overrides):
    now = now_utc()
    fields = dict(
        id=uuid4(), created_by=uuid4(), quotation_number="QUO-000001",
        customer=uuid4(), service_type="HVAC", title="Service",
        valid_until=now + timedelta(days=30),
        created_at=now, updated_at=now,
    )
    fields.update(overrides)
    return Quotation(**fields)


def _invoice(total="287.50", due_in_days=30, payments=()):
    now = now_utc()
    return Invoice(
        id=uuid4(), created_by=uuid4(), invoice_number="INV-000001",
        service_call=uuid4(), customer=uuid4(),
        issue_date=now, due_date=now + timedelta(days=due_in_days),
        total_amount=Decimal(total),
        payments=[
            Payment(amount=Decimal(a), method=PaymentMethod.EFT, date=now, recorded_by=uuid4())
            for a in payments
        ],
        created_at=now, updated_at=now,
    )


class TestServiceCallTransitions:

    @pytest.mark.parametrize("current,requested", [
        ("open", "assigned"),
        ("assigned", "in-progress"),
        ("in-progress", "completed"),
        ("on-hold", "in-progress"),
        ("completed", "in-progress"),
    ])
    def test_allowed(self, current, requested):
        check_service_call_transition(ServiceCallStatus(current), ServiceCallStatus(requested))

    @pytest.mark.parametrize("current,requested", [
        ("open", "completed"),
        ("cancelled", "open"),
        ("completed", "invoiced"),
        ("invoiced", "completed"),
    ])
    def test_rejected(self, current, requested):
        with pytest.raises(InvalidTransitionError) as exc_info:
            check_service_call_transition(ServiceCallStatus(current), ServiceCallStatus(requested))
        assert exc_info.value.requested == requested

    def test_same_status_is_noop(self):
        check_service_call_transition(ServiceCallStatus.CANCELLED, ServiceCallStatus.CANCELLED)


class TestRating:

    def test_only_finished_calls_rateable(self):
        with pytest.raises(ConflictError, match="completed or invoiced"):
            check_rateable(ServiceCallStatus.IN_PROGRESS, already_rated=False)

    def test_only_once(self):
        with pytest.raises(ConflictError, match="already been rated"):
            check_rateable(ServiceCallStatus.INVOICED, already_rated=True)

    def test_rolling_average(self):
        average, count = rolling_average(0.0, 0, 4)
        assert (average, count) == (4.0, 1)
        average, count = rolling_average(average, count, 5)
        assert (average, count) == (4.5, 2)


class TestQuotationStatus:

    def test_sent_stamps_date_once(self):
        quotation = _quotation()
        apply_quotation_status(quotation, QuotationStatus.SENT)
        first = quotation.sent_date

        apply_quotation_status(quotation, QuotationStatus.SENT)
        assert quotation.sent_date == first

    def test_converted_cannot_be_set_directly(self):
        with pytest.raises(InvalidInputError, match="Allowed"):
            apply_quotation_status(_quotation(), QuotationStatus.CONVERTED)

    def test_converted_is_final(self):
        with pytest.raises(ConflictError):
            apply_quotation_status(_quotation(status="converted"), QuotationStatus.DRAFT)

    def test_sent_past_validity_expires(self):
        quotation = _quotation(status="sent", valid_until=now_utc() - timedelta(days=1))
        assert resolve_quotation_expiry(quotation) is True
        assert quotation.status == QuotationStatus.EXPIRED

    def test_draft_past_validity_unchanged(self):
        quotation = _quotation(valid_until=now_utc() - timedelta(days=1))
        assert resolve_quotation_expiry(quotation) is False
        assert quotation.status == QuotationStatus.DRAFT


class TestQuotationGuards:

    @pytest.mark.parametrize("status", ["approved", "rejected"])
    def test_pricing_locked_after_answer(self, status):
        with pytest.raises(ConflictError, match="VAT rate"):
            check_quotation_editable(_quotation(status=status), changes_pricing=True)

    def test_approved_other_fields_editable(self):
        check_quotation_editable(_quotation(status="approved"), changes_pricing=False)

    def test_only_approved_convertible(self):
        with pytest.raises(ConflictError, match="approved"):
            check_quotation_convertible(_quotation(status="sent"))

    @pytest.mark.parametrize("status", ["approved", "converted"])
    def test_undeletable(self, status):
        with pytest.raises(ConflictError):
            check_quotation_deletable(_quotation(status=status))


class TestPaymentState:

    def test_unpaid(self):
        invoice = _invoice()
        derive_payment_state(invoice)
        assert invoice.payment_status == PaymentStatus.UNPAID
        assert invoice.balance == Decimal("287.50")

    def test_partial(self):
        invoice = _invoice(payments=["100"])
        derive_payment_state(invoice)
        assert invoice.payment_status == PaymentStatus.PARTIAL
        assert invoice.balance == Decimal("187.50")

    def test_paid_stamps_date(self):
        invoice = _invoice(payments=["200", "87.50"])
        derive_payment_state(invoice)
        assert invoice.payment_status == PaymentStatus.PAID
        assert invoice.balance == 0
        assert invoice.paid_date is not None

    def test_overdue_overlays_unpaid_and_partial(self):
        invoice = _invoice(due_in_days=-1, payments=["10"])
        derive_payment_state(invoice)
        assert invoice.payment_status == PaymentStatus.OVERDUE

    def test_paid_never_overdue(self):
        invoice = _invoice(due_in_days=-1, payments=["287.50"])
        derive_payment_state(invoice)
        assert invoice.payment_status == PaymentStatus.PAID


class TestPaymentAmount:

    def test_must_be_positive(self):
        invoice = _invoice()
        derive_payment_state(invoice)
        with pytest.raises(InvalidInputError, match="greater than 0"):
            check_payment_amount(invoice, Decimal("0"))

    def test_cannot_exceed_balance(self):
        invoice = _invoice(payments=["200"])
        derive_payment_state(invoice)
        with pytest.raises(InvalidInputError, match="exceeds"):
            check_payment_amount(invoice, Decimal("100"))

"""
Invoice service for billing completed service calls.

One invoice per service call. Creating an invoice moves the call to
invoiced; deleting it (only possible before any payment) moves the call
back to completed. Payment state is derived on every load and save.
"""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from clients.document_store import DocumentStore
from core.audit import AuditLogger
from core.event_bus import EventBus
from core.events import InvoicePaid
from core.exceptions import ConflictError, InvalidInputError, InvoiceExistsError
from core.lifecycle import check_payment_amount, derive_payment_state
from core.models import (
    CustomerOverdue, Invoice, InvoiceCreate, LineItem, OverdueInvoice, OverdueSummary,
    Payment, PaymentCreate, PaymentStatus, ServiceCallStatus, INVOICE_PERMISSIONS,
)
from core.pricing import calculate_totals
from core.services.base import OwnedRecordService
from core.services.customer_service import CustomerService
from core.services.service_call_service import ServiceCallService
from utils.timezone import days_between, days_from, now_utc
from utils.user_context import get_current_user_id

logger = logging.getLogger(__name__)

INVOICE_PREFIX = "INV"


class InvoiceService(OwnedRecordService[Invoice]):
    """Service for invoice operations."""

    collection = "invoices"
    entity_type = "invoice"
    model = Invoice
    permissions = INVOICE_PERMISSIONS

    def __init__(
        self,
        store: DocumentStore,
        audit: AuditLogger,
        customers: CustomerService,
        service_calls: ServiceCallService,
        event_bus: EventBus | None = None,
    ):
        super().__init__(store, audit, event_bus)
        self.customers = customers
        self.service_calls = service_calls

    # -------------------------------------------------------------------------
    # Derived state
    # -------------------------------------------------------------------------

    def _new_record(self, data: dict[str, Any]) -> Invoice:
        invoice = super()._new_record(data)
        derive_payment_state(invoice)
        return invoice

    def _from_document(self, document: dict[str, Any]) -> Invoice:
        invoice = super()._from_document(document)
        derive_payment_state(invoice)
        return invoice

    def _save(self, current: Invoice, updated: Invoice) -> Invoice:
        derive_payment_state(updated)
        return super()._save(current, updated)

    def _apply_totals(self, invoice: Invoice) -> None:
        totals = calculate_totals(invoice.line_items, invoice.vat_rate)
        invoice.line_items = [LineItem.model_validate(line) for line in totals.line_items]
        invoice.subtotal = totals.subtotal
        invoice.vat_amount = totals.vat_amount
        invoice.total_amount = totals.total_amount

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    def find_for_service_call(self, service_call_id: UUID | str) -> Invoice | None:
        document = self.store.find_one(
            self.collection, self._owner_filters(service_call=str(service_call_id))
        )
        return self._from_document(document) if document else None

    def create(self, data: InvoiceCreate) -> Invoice:
        """
        Invoice a completed service call.

        Args:
            data: Invoice data. invoice_number is generated when omitted;
                issue_date defaults to now and due_date to issue_date plus
                payment_terms days. Call details fill title, description,
                service type, site, equipment and quotation when omitted.

        Returns:
            Created invoice

        Raises:
            NotFoundError: If the service call or customer is not found
            InvoiceExistsError: If the call already has an invoice
            ConflictError: If the call is not completed
        """
        call = self.service_calls.get_by_id(data.service_call)

        existing = self.find_for_service_call(call.id)
        if existing is not None:
            raise InvoiceExistsError(existing)
        if call.status != ServiceCallStatus.COMPLETED:
            raise ConflictError(
                f"Only completed service calls can be invoiced "
                f"(status is '{call.status.value}')"
            )
        self.customers.get_by_id(data.customer)

        totals = calculate_totals(data.line_items, data.vat_rate)
        issue_date = data.issue_date or now_utc()
        values = {
            **data.model_dump(),
            "title": data.title or call.title,
            "description": data.description or call.description,
            "service_type": data.service_type or call.service_type,
            "site_id": data.site_id or call.site_id,
            "equipment": data.equipment or call.equipment,
            "quotation": data.quotation or call.quotation,
            "service_date": data.service_date or call.completed_date,
            "issue_date": issue_date,
            "due_date": data.due_date or days_from(issue_date, data.payment_terms),
            "line_items": totals.line_items,
            "subtotal": totals.subtotal,
            "vat_amount": totals.vat_amount,
            "total_amount": totals.total_amount,
        }

        with self.store.transaction():
            invoice = self._insert_numbered(INVOICE_PREFIX, "invoice_number", values)
            self.service_calls.mark_invoiced(call.id, invoice.id)

        logger.info(
            f"Invoice created: {invoice.invoice_number} for {call.call_number} "
            f"(total {invoice.total_amount})"
        )
        return invoice

    def update(self, record_id: UUID | str, patch: dict[str, Any]) -> Invoice:
        """
        Edit an unpaid or part-paid invoice.

        Raises:
            ConflictError: If the invoice is fully paid
            InvalidInputError: If the new total is below the amount already paid
        """
        current = self.get_by_id(record_id)
        if current.is_paid:
            raise ConflictError(f"Invoice {current.invoice_number} is paid and cannot be edited")

        updated = self._patched(current, patch)
        if updated.customer != current.customer:
            self.customers.get_by_id(updated.customer)
        if "line_items" in patch or "vat_rate" in patch:
            self._apply_totals(updated)
            if updated.total_amount < current.paid_amount:
                raise InvalidInputError(
                    f"Invoice total ({updated.total_amount}) cannot be less than "
                    f"the amount already paid ({current.paid_amount})"
                )
        if "due_date" not in patch and (
            updated.payment_terms != current.payment_terms
            or updated.issue_date != current.issue_date
        ):
            updated.due_date = days_from(updated.issue_date, updated.payment_terms)

        saved = self._save(current, updated)
        logger.info(f"Invoice updated: {saved.invoice_number}")
        return saved

    def record_payment(self, record_id: UUID | str, data: PaymentCreate) -> Invoice:
        """
        Append a payment and re-derive the payment state.

        Raises:
            InvalidInputError: If amount is not positive or exceeds the balance
        """
        current = self.get_by_id(record_id)
        check_payment_amount(current, data.amount)

        payment = Payment(
            amount=data.amount,
            method=data.method,
            date=data.date or now_utc(),
            reference=data.reference,
            notes=data.notes,
            recorded_by=get_current_user_id(),
        )
        updated = current.model_copy(deep=True)
        updated.payments.append(payment)
        saved = self._save(current, updated)

        logger.info(
            f"Payment of {payment.amount} recorded on {saved.invoice_number}; "
            f"balance {saved.balance} ({saved.payment_status.value})"
        )
        if saved.is_paid and not current.is_paid:
            self._publish(InvoicePaid.create(saved))
        return saved

    def delete(self, record_id: UUID | str) -> None:
        """
        Delete an invoice with no payments and return its call to completed.

        Raises:
            ConflictError: If any payment has been recorded
        """
        invoice = self.get_by_id(record_id)
        if invoice.payments:
            raise ConflictError(
                f"Invoice {invoice.invoice_number} has recorded payments and cannot be deleted"
            )

        with self.store.transaction():
            self._remove(invoice)
            if self.service_calls.find_by_id(invoice.service_call) is not None:
                self.service_calls.revert_invoiced(invoice.service_call)

        logger.info(f"Invoice deleted: {invoice.invoice_number}")

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_invoices(
        self,
        payment_status: str | None = None,
        customer: UUID | str | None = None,
    ) -> list[Invoice]:
        # Payment status is derived, so it is matched after load
        invoices = self.list_all({"customer": str(customer) if customer else None})
        if payment_status is None:
            return invoices
        return [i for i in invoices if i.payment_status.value == payment_status]

    def list_by_payment_status(self, payment_status: PaymentStatus | str) -> list[Invoice]:
        """
        Raises:
            InvalidInputError: If the status is unknown
        """
        try:
            status = PaymentStatus(payment_status)
        except ValueError:
            raise InvalidInputError(f"Invalid payment status '{payment_status}'")
        return self.list_invoices(payment_status=status.value)

    def overdue_summary(self, now: datetime | None = None) -> OverdueSummary:
        """Overdue invoices grouped by customer, with days overdue."""
        now = now or now_utc()
        summary = OverdueSummary()
        by_customer: dict[UUID, CustomerOverdue] = {}

        for invoice in self.list_by_payment_status(PaymentStatus.OVERDUE):
            group = by_customer.get(invoice.customer)
            if group is None:
                customer = self.customers.find_by_id(invoice.customer)
                group = CustomerOverdue(
                    customer=invoice.customer,
                    customer_name=customer.display_name if customer else None,
                )
                by_customer[invoice.customer] = group

            group.invoices.append(OverdueInvoice(
                id=invoice.id,
                invoice_number=invoice.invoice_number,
                total_amount=invoice.total_amount,
                balance=invoice.balance,
                due_date=invoice.due_date,
                days_overdue=days_between(invoice.due_date, now),
            ))
            group.total_overdue += invoice.balance
            summary.total_overdue_invoices += 1
            summary.total_overdue_amount += invoice.balance

        summary.overdue_by_customer = list(by_customer.values())
        summary.customers_with_overdue = len(by_customer)
        return summary

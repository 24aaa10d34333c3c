"""
Quotation service.

Quotations move draft -> sent -> approved/rejected/expired through
update_status(), and approved -> converted only through
convert_to_service_call(). A sent quotation past valid_until becomes
expired the next time it is loaded or saved.
"""

import logging
from typing import Any
from uuid import UUID

from clients.document_store import DocumentStore
from core.audit import AuditLogger
from core.event_bus import EventBus
from core.events import QuotationConverted
from core.exceptions import InvalidInputError, NotFoundError
from core.lifecycle import (
    apply_quotation_status, check_quotation_convertible, check_quotation_deletable,
    check_quotation_editable, resolve_quotation_expiry,
)
from core.models import (
    LineItem, Quotation, QuotationConversion, QuotationCreate, QuotationStatus,
    ServiceCall, ServiceCallCreate, ServiceCallStatus, QUOTATION_PERMISSIONS,
)
from core.pricing import calculate_totals
from core.services.base import OwnedRecordService
from core.services.customer_service import CustomerService
from core.services.equipment_service import EquipmentService
from core.services.service_call_service import ServiceCallService
from utils.timezone import days_from, now_utc

logger = logging.getLogger(__name__)

QUOTATION_PREFIX = "QT"
DEFAULT_VALIDITY_DAYS = 30


class QuotationService(OwnedRecordService[Quotation]):
    """Service for quotation operations."""

    collection = "quotations"
    entity_type = "quotation"
    model = Quotation
    permissions = QUOTATION_PERMISSIONS

    def __init__(
        self,
        store: DocumentStore,
        audit: AuditLogger,
        customers: CustomerService,
        equipment: EquipmentService,
        service_calls: ServiceCallService,
        event_bus: EventBus | None = None,
    ):
        super().__init__(store, audit, event_bus)
        self.customers = customers
        self.equipment = equipment
        self.service_calls = service_calls

    def _from_document(self, document: dict[str, Any]) -> Quotation:
        quotation = super()._from_document(document)
        if resolve_quotation_expiry(quotation):
            self._save(Quotation.model_validate(document), quotation)
            logger.info(f"Quotation {quotation.quotation_number} expired")
        return quotation

    def _check_references(self, customer: UUID, site_id: UUID | None, equipment: UUID | None):
        record = self.customers.get_by_id(customer)
        if site_id is not None and record.find_site(site_id) is None:
            raise NotFoundError("site", site_id)
        if equipment is not None:
            self.equipment.get_by_id(equipment)

    def _apply_totals(self, quotation: Quotation) -> None:
        totals = calculate_totals(quotation.line_items, quotation.vat_rate)
        quotation.line_items = [LineItem.model_validate(line) for line in totals.line_items]
        quotation.subtotal = totals.subtotal
        quotation.vat_amount = totals.vat_amount
        quotation.total_amount = totals.total_amount

    def create(self, data: QuotationCreate) -> Quotation:
        """
        Create a draft quotation.

        Args:
            data: Quotation data. quotation_number is generated when
                omitted; valid_until defaults to 30 days from now.

        Returns:
            Created quotation with totals computed

        Raises:
            NotFoundError: If the customer, site or equipment is not found
            InvalidInputError: If a line item is invalid
        """
        self._check_references(data.customer, data.site_id, data.equipment)

        totals = calculate_totals(data.line_items, data.vat_rate)
        values = {
            **data.model_dump(),
            "line_items": totals.line_items,
            "subtotal": totals.subtotal,
            "vat_amount": totals.vat_amount,
            "total_amount": totals.total_amount,
            "valid_until": data.valid_until or days_from(now_utc(), DEFAULT_VALIDITY_DAYS),
            "status": QuotationStatus.DRAFT,
        }

        quotation = self._insert_numbered(QUOTATION_PREFIX, "quotation_number", values)
        logger.info(
            f"Quotation created: {quotation.quotation_number} (total {quotation.total_amount})"
        )
        return quotation

    def update(self, record_id: UUID | str, patch: dict[str, Any]) -> Quotation:
        """
        Edit a quotation. Status changes go through update_status().

        Raises:
            ConflictError: If converted, or line items or the VAT rate
                change after the customer has approved or rejected
        """
        current = self.get_by_id(record_id)
        changes_pricing = "line_items" in patch or "vat_rate" in patch
        check_quotation_editable(current, changes_pricing=changes_pricing)

        updated = self._patched(current, patch)
        if (updated.customer, updated.site_id, updated.equipment) != (
            current.customer, current.site_id, current.equipment
        ):
            self._check_references(updated.customer, updated.site_id, updated.equipment)
        if changes_pricing:
            self._apply_totals(updated)
        resolve_quotation_expiry(updated)

        saved = self._save(current, updated)
        logger.info(f"Quotation updated: {saved.quotation_number}")
        return saved

    def update_status(
        self,
        record_id: UUID | str,
        status: QuotationStatus | str,
        rejection_reason: str | None = None,
    ) -> Quotation:
        """
        Set the quotation's status explicitly.

        Entering sent, approved or rejected stamps its date the first time.

        Raises:
            InvalidInputError: If the status is unknown or cannot be set directly
            ConflictError: If the quotation is already converted
        """
        try:
            requested = QuotationStatus(status)
        except ValueError:
            raise InvalidInputError(f"Invalid quotation status '{status}'")

        current = self.get_by_id(record_id)
        updated = current.model_copy(deep=True)
        apply_quotation_status(updated, requested)
        if requested == QuotationStatus.REJECTED and rejection_reason:
            updated.rejection_reason = rejection_reason
        resolve_quotation_expiry(updated)

        saved = self._save(current, updated)
        logger.info(
            f"Quotation {saved.quotation_number}: {current.status.value} -> {saved.status.value}"
        )
        return saved

    def convert_to_service_call(
        self,
        record_id: UUID | str,
        conversion: QuotationConversion | None = None,
    ) -> tuple[Quotation, ServiceCall]:
        """
        Turn an approved quotation into a pending service call.

        Both records are written in one transaction: if the call cannot be
        created the quotation stays approved.

        Args:
            record_id: Quotation to convert
            conversion: Optional agent, scheduled date and priority for the call

        Returns:
            (converted quotation, new service call)

        Raises:
            ConflictError: If the quotation is not approved
        """
        conversion = conversion or QuotationConversion()
        current = self.get_by_id(record_id)
        check_quotation_convertible(current)

        with self.store.transaction():
            call = self.service_calls.create(ServiceCallCreate(
                customer=current.customer,
                site_id=current.site_id,
                equipment=current.equipment,
                quotation=current.id,
                title=current.title,
                description=current.description or current.title,
                service_type=current.service_type,
                notes=current.notes,
                assigned_agent=conversion.assigned_agent,
                scheduled_date=conversion.scheduled_date,
                priority=conversion.priority,
                status=ServiceCallStatus.PENDING,
            ))

            updated = current.model_copy(deep=True)
            updated.status = QuotationStatus.CONVERTED
            updated.converted_to_service_call = call.id
            updated.converted_date = now_utc()
            saved = self._save(current, updated)

        logger.info(f"Quotation {saved.quotation_number} converted to {call.call_number}")
        self._publish(QuotationConverted.create(saved, call))
        return saved, call

    def delete(self, record_id: UUID | str) -> None:
        """
        Raises:
            ConflictError: If approved or converted
        """
        quotation = self.get_by_id(record_id)
        check_quotation_deletable(quotation)
        self._remove(quotation)
        logger.info(f"Quotation deleted: {quotation.quotation_number}")

    def list_quotations(
        self,
        status: str | None = None,
        customer: UUID | str | None = None,
    ) -> list[Quotation]:
        # Status is matched after load so lazily expired quotations filter correctly
        quotations = self.list_all({"customer": str(customer) if customer else None})
        if status is None:
            return quotations
        return [q for q in quotations if q.status.value == status]

"""
Equipment service for serviced assets.

Equipment belongs to a customer (and optionally one of its sites) and
accumulates a service history as service calls are raised against it.
Equipment with history cannot be deleted; decommission it instead.
"""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from clients.document_store import DocumentStore
from core.audit import AuditLogger
from core.event_bus import EventBus
from core.exceptions import ConflictError, NotFoundError
from core.models import (
    Equipment, EquipmentCreate, ServiceCall, WarrantyState, WarrantySummary,
    EQUIPMENT_PERMISSIONS,
)
from core.services.base import OwnedRecordService
from core.services.customer_service import CustomerService
from utils.timezone import days_from, now_utc

logger = logging.getLogger(__name__)

EQUIPMENT_PREFIX = "EQ"
EXPIRING_SOON_DAYS = 30


def warranty_state(equipment: Equipment, now: datetime | None = None) -> WarrantyState:
    """Classify one piece of equipment's warranty relative to now."""
    if equipment.warranty_expiry is None:
        return WarrantyState.NO_WARRANTY

    now = now or now_utc()
    if equipment.warranty_expiry <= now:
        return WarrantyState.EXPIRED
    if equipment.warranty_expiry <= days_from(now, EXPIRING_SOON_DAYS):
        return WarrantyState.EXPIRING_SOON
    return WarrantyState.UNDER_WARRANTY


class EquipmentService(OwnedRecordService[Equipment]):
    """Service for equipment operations."""

    collection = "equipment"
    entity_type = "equipment"
    model = Equipment
    permissions = EQUIPMENT_PERMISSIONS

    def __init__(
        self,
        store: DocumentStore,
        audit: AuditLogger,
        customers: CustomerService,
        event_bus: EventBus | None = None,
    ):
        super().__init__(store, audit, event_bus)
        self.customers = customers

    def _check_placement(self, customer_id: UUID | str, site_id: UUID | str | None) -> None:
        customer = self.customers.get_by_id(customer_id)
        if site_id is not None and customer.find_site(UUID(str(site_id))) is None:
            raise NotFoundError("site", site_id)

    def create(self, data: EquipmentCreate) -> Equipment:
        """
        Register equipment for an owned customer.

        Args:
            data: Equipment data. equipment_id is generated when omitted.

        Raises:
            NotFoundError: If the customer or site is not found
            ConflictError: If a supplied equipment_id is already in use
        """
        self._check_placement(data.customer, data.site_id)
        equipment = self._insert_numbered(EQUIPMENT_PREFIX, "equipment_id", data.model_dump())
        logger.info(f"Equipment created: {equipment.equipment_id} ({equipment.type_label})")
        return equipment

    def update(self, record_id: UUID | str, patch: dict[str, Any]) -> Equipment:
        current = self.get_by_id(record_id)
        updated = self._patched(current, patch)
        if (updated.customer, updated.site_id) != (current.customer, current.site_id):
            self._check_placement(updated.customer, updated.site_id)
        saved = self._save(current, updated)
        logger.info(f"Equipment updated: {saved.equipment_id}")
        return saved

    def delete(self, record_id: UUID | str) -> None:
        """
        Raises:
            NotFoundError: If missing or not owned
            ConflictError: If the equipment has service history
        """
        equipment = self.get_by_id(record_id)
        if equipment.service_history:
            raise ConflictError(
                f"Cannot delete equipment with service history "
                f"({len(equipment.service_history)} service calls). "
                f"Mark it as decommissioned instead."
            )
        self._remove(equipment)
        logger.info(f"Equipment deleted: {equipment.equipment_id}")

    def list_equipment(
        self,
        customer: UUID | str | None = None,
        status: str | None = None,
        equipment_type: str | None = None,
    ) -> list[Equipment]:
        return self.list_all({
            "customer": str(customer) if customer else None,
            "status": status,
            "equipment_type": equipment_type,
        })

    def list_for_customer(self, customer_id: UUID | str) -> list[Equipment]:
        """Equipment registered to one customer."""
        customer = self.customers.get_by_id(customer_id)
        return self.list_all({"customer": str(customer.id)})

    def list_for_site(self, customer_id: UUID | str, site_id: UUID | str) -> list[Equipment]:
        """Equipment at one site of a customer."""
        return self.list_all({"customer": str(customer_id), "site_id": str(site_id)})

    def service_history(self, equipment_id: UUID | str) -> list[ServiceCall]:
        """
        Service calls raised against the equipment, in the order recorded.

        Calls deleted since are skipped.
        """
        equipment = self.get_by_id(equipment_id)
        calls = []
        for call_id in equipment.service_history:
            document = self.store.find_one(
                "service_calls", self._owner_filters(id=str(call_id))
            )
            if document is not None:
                calls.append(ServiceCall.model_validate(document))
        return calls

    def add_service_record(self, equipment_id: UUID | str, service_call_id: UUID) -> Equipment:
        """Append a service call to the history (once)."""
        current = self.get_by_id(equipment_id)
        if service_call_id in current.service_history:
            return current
        updated = current.model_copy(deep=True)
        updated.service_history.append(service_call_id)
        return self._save(current, updated)

    def record_service_date(
        self, equipment_id: UUID | str, serviced_at: datetime | None = None
    ) -> Equipment:
        """Stamp last_service_date (defaults to now)."""
        current = self.get_by_id(equipment_id)
        updated = current.model_copy(deep=True)
        updated.last_service_date = serviced_at or now_utc()
        return self._save(current, updated)

    def warranty_status(self, now: datetime | None = None) -> WarrantySummary:
        """
        Warranty summary across all of the principal's equipment.

        Expiring-soon means expiry within EXPIRING_SOON_DAYS; those records
        are also counted as under warranty.
        """
        now = now or now_utc()
        summary = WarrantySummary()

        for equipment in self.list_all():
            summary.total += 1
            state = warranty_state(equipment, now)
            if state == WarrantyState.NO_WARRANTY:
                summary.no_warranty += 1
            elif state == WarrantyState.EXPIRED:
                summary.expired += 1
                summary.expired_equipment.append(equipment)
            else:
                summary.under_warranty += 1
                if state == WarrantyState.EXPIRING_SOON:
                    summary.expiring_soon += 1
                    summary.expiring_soon_equipment.append(equipment)

        return summary

"""
Service call (work order) service.

Status changes through update follow core.lifecycle.SERVICE_CALL_TRANSITIONS.
The invoiced status is owned by InvoiceService, which moves calls in and out
of it via mark_invoiced() and revert_invoiced().

First completion stamps completed_date and publishes ServiceCallCompleted;
agent job counts and equipment service dates are maintained by its handler.
"""

import logging
from typing import Any
from uuid import UUID

from clients.document_store import DocumentStore
from core.audit import AuditLogger
from core.event_bus import EventBus
from core.events import ServiceCallCompleted
from core.exceptions import ConflictError, InvalidInputError, NotFoundError
from core.lifecycle import (
    INITIAL_SERVICE_CALL_STATUSES, check_rateable, check_service_call_transition,
)
from core.models import (
    LineItem, RatingSubmission, ServiceCall, ServiceCallCreate, ServiceCallStatus,
    SERVICE_CALL_PERMISSIONS,
)
from core.pricing import calculate_parts_cost
from core.services.agent_service import AgentService
from core.services.base import OwnedRecordService
from core.services.customer_service import CustomerService
from core.services.equipment_service import EquipmentService
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

SERVICE_CALL_PREFIX = "SC"


class ServiceCallService(OwnedRecordService[ServiceCall]):
    """Service for service call operations."""

    collection = "service_calls"
    entity_type = "service_call"
    model = ServiceCall
    permissions = SERVICE_CALL_PERMISSIONS

    def __init__(
        self,
        store: DocumentStore,
        audit: AuditLogger,
        customers: CustomerService,
        agents: AgentService,
        equipment: EquipmentService,
        event_bus: EventBus | None = None,
    ):
        super().__init__(store, audit, event_bus)
        self.customers = customers
        self.agents = agents
        self.equipment = equipment

    def _check_references(
        self,
        customer: UUID,
        site_id: UUID | None,
        assigned_agent: UUID | None,
        equipment: UUID | None,
    ) -> None:
        record = self.customers.get_by_id(customer)
        if site_id is not None and record.find_site(site_id) is None:
            raise NotFoundError("site", site_id)
        if assigned_agent is not None:
            self.agents.get_by_id(assigned_agent)
        if equipment is not None:
            self.equipment.get_by_id(equipment)

    def create(self, data: ServiceCallCreate) -> ServiceCall:
        """
        Open a service call.

        Args:
            data: Call data. call_number is generated when omitted.

        Returns:
            Created service call with parts priced

        Raises:
            InvalidInputError: If the initial status is not pending, open
                or assigned, or a part line is invalid
            NotFoundError: If a referenced customer, site, agent or
                equipment is not found
        """
        if data.status not in INITIAL_SERVICE_CALL_STATUSES:
            raise InvalidInputError(
                f"Service calls cannot be created as '{data.status.value}'"
            )
        self._check_references(data.customer, data.site_id, data.assigned_agent, data.equipment)

        parts, parts_cost = calculate_parts_cost(data.parts_used)
        values = {**data.model_dump(), "parts_used": parts, "parts_cost": parts_cost}

        with self.store.transaction():
            call = self._insert_numbered(SERVICE_CALL_PREFIX, "call_number", values)
            if call.equipment is not None:
                self.equipment.add_service_record(call.equipment, call.id)

        logger.info(f"Service call created: {call.call_number} ({call.status.value})")
        return call

    def update(self, record_id: UUID | str, patch: dict[str, Any]) -> ServiceCall:
        """
        Apply a patch, validating any status change against the transition table.

        Raises:
            NotFoundError: If the call or a newly referenced record is not found
            ImmutableFieldError: If the patch changes call_number
            InvalidTransitionError: If the status move is not allowed
        """
        current = self.get_by_id(record_id)
        updated = self._patched(current, patch)

        check_service_call_transition(current.status, updated.status)

        if (
            updated.customer != current.customer
            or updated.site_id != current.site_id
            or updated.assigned_agent != current.assigned_agent
            or updated.equipment != current.equipment
        ):
            self._check_references(
                updated.customer,
                updated.site_id,
                updated.assigned_agent if updated.assigned_agent != current.assigned_agent else None,
                updated.equipment if updated.equipment != current.equipment else None,
            )

        if "parts_used" in patch:
            parts, updated.parts_cost = calculate_parts_cost(updated.parts_used)
            updated.parts_used = [LineItem.model_validate(p) for p in parts]

        newly_completed = (
            updated.status == ServiceCallStatus.COMPLETED
            and current.completed_date is None
        )
        if newly_completed:
            updated.completed_date = now_utc()

        with self.store.transaction():
            saved = self._save(current, updated)
            if saved.equipment is not None and saved.equipment != current.equipment:
                self.equipment.add_service_record(saved.equipment, saved.id)

        if current.status != saved.status:
            logger.info(
                f"Service call {saved.call_number}: {current.status.value} -> {saved.status.value}"
            )
        if newly_completed:
            self._publish(ServiceCallCompleted.create(saved))
        return saved

    def delete(self, record_id: UUID | str) -> None:
        """
        Raises:
            NotFoundError: If missing or not owned
            ConflictError: If the call has been invoiced
        """
        call = self.get_by_id(record_id)
        if call.status == ServiceCallStatus.INVOICED:
            raise ConflictError(
                f"Service call {call.call_number} is invoiced; delete the invoice first"
            )
        self._remove(call)
        logger.info(f"Service call deleted: {call.call_number}")

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_service_calls(
        self,
        status: str | None = None,
        priority: str | None = None,
        customer: UUID | str | None = None,
        assigned_agent: UUID | str | None = None,
    ) -> list[ServiceCall]:
        return self.list_all({
            "status": status,
            "priority": priority,
            "customer": str(customer) if customer else None,
            "assigned_agent": str(assigned_agent) if assigned_agent else None,
        })

    def list_for_agent(self, agent_id: UUID | str) -> list[ServiceCall]:
        """Calls assigned to one agent."""
        agent = self.agents.get_by_id(agent_id)
        return self.list_all({"assigned_agent": str(agent.id)})

    def list_for_customer(self, customer_id: UUID | str) -> list[ServiceCall]:
        """Calls raised for one customer."""
        customer = self.customers.get_by_id(customer_id)
        return self.list_all({"customer": str(customer.id)})

    # -------------------------------------------------------------------------
    # Job outcome
    # -------------------------------------------------------------------------

    def rate(self, record_id: UUID | str, submission: RatingSubmission) -> ServiceCall:
        """
        Record the customer's rating of a finished job.

        The assigned agent's rating average is updated in the same
        transaction.

        Raises:
            ConflictError: If the call is not completed or invoiced, or is
                already rated
        """
        current = self.get_by_id(record_id)
        check_rateable(current.status, current.is_rated)

        updated = current.model_copy(deep=True)
        updated.rating = submission.rating
        updated.customer_feedback = submission.customer_feedback
        updated.rated_date = now_utc()

        with self.store.transaction():
            saved = self._save(current, updated)
            if saved.assigned_agent is not None:
                if self.agents.find_by_id(saved.assigned_agent) is None:
                    logger.warning(
                        f"Rated call {saved.call_number} references missing agent "
                        f"{saved.assigned_agent}; agent average not updated"
                    )
                else:
                    self.agents.record_rating(saved.assigned_agent, submission.rating)

        logger.info(f"Service call {saved.call_number} rated {saved.rating}")
        return saved

    def add_photos(
        self,
        record_id: UUID | str,
        before: list[str] | None = None,
        after: list[str] | None = None,
    ) -> ServiceCall:
        """Append photo references. Existing photos are never replaced."""
        if not before and not after:
            raise InvalidInputError("No photos supplied")

        current = self.get_by_id(record_id)
        updated = current.model_copy(deep=True)
        updated.before_photos.extend(before or [])
        updated.after_photos.extend(after or [])
        return self._save(current, updated)

    # -------------------------------------------------------------------------
    # Invoice linkage
    # -------------------------------------------------------------------------

    def mark_invoiced(self, record_id: UUID | str, invoice_id: UUID) -> ServiceCall:
        """
        Move a completed call to invoiced and link the invoice.

        Raises:
            ConflictError: If the call is not completed
        """
        current = self.get_by_id(record_id)
        if current.status != ServiceCallStatus.COMPLETED:
            raise ConflictError(
                f"Only completed service calls can be invoiced "
                f"(status is '{current.status.value}')"
            )
        updated = current.model_copy(deep=True)
        updated.status = ServiceCallStatus.INVOICED
        updated.invoiced_date = now_utc()
        updated.invoice = invoice_id
        return self._save(current, updated)

    def revert_invoiced(self, record_id: UUID | str) -> ServiceCall:
        """Return an invoiced call to completed and drop the invoice link."""
        current = self.get_by_id(record_id)
        updated = current.model_copy(deep=True)
        updated.status = ServiceCallStatus.COMPLETED
        updated.invoiced_date = None
        updated.invoice = None
        return self._save(current, updated)

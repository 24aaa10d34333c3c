"""POST /api/actions: unified mutation endpoint."""

from uuid import UUID

from fastapi import APIRouter, Request
from pydantic import BaseModel

from api.base import success_response
from core.models import (
    AgentCreate,
    CustomerCreate,
    EquipmentCreate,
    InvoiceCreate,
    PaymentCreate,
    QuotationConversion,
    QuotationCreate,
    RatingSubmission,
    ServiceCallCreate,
    SiteCreate,
)


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "agent": AgentHandler(services["agent"]),
        "customer": CustomerHandler(services["customer"]),
        "service_call": ServiceCallHandler(services["service_call"]),
        "equipment": EquipmentHandler(services["equipment"]),
        "quotation": QuotationHandler(services["quotation"]),
        "invoice": InvoiceHandler(services["invoice"]),
    }

    @router.post("/actions")
    async def perform_action(request: Request, body: ActionRequest):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        method = getattr(handler, f"_handle_{body.action}")
        result = method(dict(body.data))
        return success_response(result).model_dump(mode="json")

    return router


def _require_id(data: dict, key: str = "id") -> UUID:
    value = data.pop(key, None)
    if not value:
        raise ValueError(f"'{key}' is required")
    return UUID(str(value))


# =============================================================================
# HANDLER CLASSES
# =============================================================================


class RecordHandler:
    """create / update / delete shared by every domain."""

    ALLOWED_ACTIONS = {"create", "update", "delete"}
    create_model: type[BaseModel]

    def __init__(self, service):
        self.service = service

    def _handle_create(self, data: dict):
        record = self.service.create(self.create_model(**data))
        return record.model_dump(mode="json")

    def _handle_update(self, data: dict):
        record_id = _require_id(data)
        record = self.service.update(record_id, data)
        return record.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        self.service.delete(_require_id(data))
        return {"deleted": True}


class AgentHandler(RecordHandler):
    ALLOWED_ACTIONS = RecordHandler.ALLOWED_ACTIONS | {"update_availability", "update_location"}
    create_model = AgentCreate

    def _handle_update_availability(self, data: dict):
        agent = self.service.update_availability(_require_id(data), data.get("availability"))
        return agent.model_dump(mode="json")

    def _handle_update_location(self, data: dict):
        agent = self.service.update_location(
            _require_id(data), data.get("latitude"), data.get("longitude")
        )
        return agent.model_dump(mode="json")


class CustomerHandler(RecordHandler):
    ALLOWED_ACTIONS = RecordHandler.ALLOWED_ACTIONS | {"add_site", "update_site", "delete_site"}
    create_model = CustomerCreate

    def _handle_add_site(self, data: dict):
        customer_id = _require_id(data)
        site = self.service.add_site(customer_id, SiteCreate(**data))
        return site.model_dump(mode="json")

    def _handle_update_site(self, data: dict):
        customer_id = _require_id(data)
        site_id = _require_id(data, "site_id")
        site = self.service.update_site(customer_id, site_id, data)
        return site.model_dump(mode="json")

    def _handle_delete_site(self, data: dict):
        customer_id = _require_id(data)
        self.service.delete_site(customer_id, _require_id(data, "site_id"))
        return {"deleted": True}


class ServiceCallHandler(RecordHandler):
    ALLOWED_ACTIONS = RecordHandler.ALLOWED_ACTIONS | {"rate", "add_photos"}
    create_model = ServiceCallCreate

    def _handle_rate(self, data: dict):
        call_id = _require_id(data)
        call = self.service.rate(call_id, RatingSubmission(**data))
        return call.model_dump(mode="json")

    def _handle_add_photos(self, data: dict):
        call = self.service.add_photos(
            _require_id(data),
            before=data.get("before_photos"),
            after=data.get("after_photos"),
        )
        return call.model_dump(mode="json")


class EquipmentHandler(RecordHandler):
    create_model = EquipmentCreate


class QuotationHandler(RecordHandler):
    ALLOWED_ACTIONS = RecordHandler.ALLOWED_ACTIONS | {"update_status", "convert"}
    create_model = QuotationCreate

    def _handle_update_status(self, data: dict):
        quotation = self.service.update_status(
            _require_id(data),
            data.get("status", ""),
            rejection_reason=data.get("rejection_reason"),
        )
        return quotation.model_dump(mode="json")

    def _handle_convert(self, data: dict):
        quotation_id = _require_id(data)
        quotation, service_call = self.service.convert_to_service_call(
            quotation_id, QuotationConversion(**data)
        )
        return {
            "quotation": quotation.model_dump(mode="json"),
            "service_call": service_call.model_dump(mode="json"),
        }


class InvoiceHandler(RecordHandler):
    ALLOWED_ACTIONS = RecordHandler.ALLOWED_ACTIONS | {"record_payment"}
    create_model = InvoiceCreate

    def _handle_record_payment(self, data: dict):
        invoice_id = _require_id(data)
        invoice = self.service.record_payment(invoice_id, PaymentCreate(**data))
        return invoice.model_dump(mode="json")

"""GET /api/data: unified read endpoint."""

from uuid import UUID

from fastapi import APIRouter, Query, Request

from api.base import success_response


VALID_TYPES = {"agents", "customers", "service_calls", "equipment", "quotations", "invoices"}


def _dump(records) -> list[dict]:
    return [r.model_dump(mode="json") for r in records]


def _expand(service, record_id) -> dict | None:
    """Referenced record as JSON, or None if unset or gone."""
    if record_id is None:
        return None
    record = service.find_by_id(record_id)
    return record.model_dump(mode="json") if record else None


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    agent_svc = services["agent"]
    customer_svc = services["customer"]
    service_call_svc = services["service_call"]
    equipment_svc = services["equipment"]
    quotation_svc = services["quotation"]
    invoice_svc = services["invoice"]

    # -------------------------------------------------------------------------
    # Convenience routes (must be registered before the generic /data route)
    # -------------------------------------------------------------------------

    @router.get("/data/customers/{customer_id}/sites")
    async def customer_sites(request: Request, customer_id: UUID):
        sites = customer_svc.list_sites(customer_id)
        return success_response(_dump(sites)).model_dump(mode="json")

    @router.get("/data/equipment/warranty-status")
    async def equipment_warranty_status(request: Request):
        summary = equipment_svc.warranty_status()
        return success_response(summary.model_dump(mode="json")).model_dump(mode="json")

    @router.get("/data/equipment/{equipment_id}/service-history")
    async def equipment_service_history(request: Request, equipment_id: UUID):
        equipment = equipment_svc.get_by_id(equipment_id)
        calls = equipment_svc.service_history(equipment_id)
        return success_response({
            "equipment_id": equipment.equipment_id,
            "equipment_type": equipment.type_label,
            "brand": equipment.brand,
            "model": equipment.model,
            "service_history": _dump(calls),
        }).model_dump(mode="json")

    @router.get("/data/invoices/overdue-summary")
    async def invoices_overdue_summary(request: Request):
        summary = invoice_svc.overdue_summary()
        return success_response(summary.model_dump(mode="json")).model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Generic data endpoint
    # -------------------------------------------------------------------------

    @router.get("/data")
    async def get_data(
        request: Request,
        type: str | None = Query(None),
        id: str | None = Query(None),
        include: str | None = Query(None),
        status: str | None = Query(None),
        customer_id: str | None = Query(None),
        agent_id: str | None = Query(None),
        site_id: str | None = Query(None),
        availability: str | None = Query(None),
        priority: str | None = Query(None),
        payment_status: str | None = Query(None),
        customer_type: str | None = Query(None),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        includes = set(include.split(",")) if include else set()

        if type == "agents":
            return _handle_agents(agent_svc, service_call_svc, id, status, availability, includes)

        if type == "customers":
            return _handle_customers(
                customer_svc, equipment_svc, service_call_svc, id, customer_type, status, includes
            )

        if type == "service_calls":
            return _handle_service_calls(
                services, id, status, priority, customer_id, agent_id, includes
            )

        if type == "equipment":
            return _handle_equipment(
                equipment_svc, customer_svc, id, customer_id, site_id, status, includes
            )

        if type == "quotations":
            return _handle_quotations(services, id, status, customer_id, includes)

        if type == "invoices":
            return _handle_invoices(services, id, payment_status, customer_id, includes)

    return router


def _handle_agents(agent_svc, service_call_svc, id, status, availability, includes):
    if id:
        agent = agent_svc.get_by_id(UUID(id))
        data = agent.model_dump(mode="json")
        if "service_calls" in includes:
            data["service_calls"] = _dump(service_call_svc.list_for_agent(agent.id))
        return success_response(data).model_dump(mode="json")

    agents = agent_svc.list_agents(status=status, availability=availability)
    return success_response(_dump(agents)).model_dump(mode="json")


def _handle_customers(customer_svc, equipment_svc, service_call_svc, id, customer_type, status, includes):
    if id:
        customer = customer_svc.get_by_id(UUID(id))
        data = customer.model_dump(mode="json")
        if "equipment" in includes:
            data["equipment"] = _dump(equipment_svc.list_for_customer(customer.id))
        if "service_calls" in includes:
            data["service_calls"] = _dump(service_call_svc.list_for_customer(customer.id))
        return success_response(data).model_dump(mode="json")

    customers = customer_svc.list_customers(customer_type=customer_type, account_status=status)
    return success_response(_dump(customers)).model_dump(mode="json")


def _handle_service_calls(services, id, status, priority, customer_id, agent_id, includes):
    service_call_svc = services["service_call"]

    if id:
        call = service_call_svc.get_by_id(UUID(id))
        data = call.model_dump(mode="json")
        if "customer" in includes:
            data["customer"] = _expand(services["customer"], call.customer)
        if "agent" in includes:
            data["assigned_agent"] = _expand(services["agent"], call.assigned_agent)
        if "equipment" in includes:
            data["equipment"] = _expand(services["equipment"], call.equipment)
        if "quotation" in includes:
            data["quotation"] = _expand(services["quotation"], call.quotation)
        if "invoice" in includes:
            data["invoice"] = _expand(services["invoice"], call.invoice)
        return success_response(data).model_dump(mode="json")

    calls = service_call_svc.list_service_calls(
        status=status,
        priority=priority,
        customer=UUID(customer_id) if customer_id else None,
        assigned_agent=UUID(agent_id) if agent_id else None,
    )
    return success_response(_dump(calls)).model_dump(mode="json")


def _handle_equipment(equipment_svc, customer_svc, id, customer_id, site_id, status, includes):
    if id:
        equipment = equipment_svc.get_by_id(UUID(id))
        data = equipment.model_dump(mode="json")
        if "customer" in includes:
            data["customer"] = _expand(customer_svc, equipment.customer)
        if "service_history" in includes:
            data["service_history"] = _dump(equipment_svc.service_history(equipment.id))
        return success_response(data).model_dump(mode="json")

    if site_id:
        if not customer_id:
            raise ValueError("'site_id' filter requires 'customer_id'")
        equipment = equipment_svc.list_for_site(UUID(customer_id), UUID(site_id))
    else:
        equipment = equipment_svc.list_equipment(
            customer=UUID(customer_id) if customer_id else None,
            status=status,
        )
    return success_response(_dump(equipment)).model_dump(mode="json")


def _handle_quotations(services, id, status, customer_id, includes):
    quotation_svc = services["quotation"]

    if id:
        quotation = quotation_svc.get_by_id(UUID(id))
        data = quotation.model_dump(mode="json")
        if "customer" in includes:
            data["customer"] = _expand(services["customer"], quotation.customer)
        if "service_call" in includes:
            data["converted_to_service_call"] = _expand(
                services["service_call"], quotation.converted_to_service_call
            )
        return success_response(data).model_dump(mode="json")

    quotations = quotation_svc.list_quotations(
        status=status,
        customer=UUID(customer_id) if customer_id else None,
    )
    return success_response(_dump(quotations)).model_dump(mode="json")


def _handle_invoices(services, id, payment_status, customer_id, includes):
    invoice_svc = services["invoice"]

    if id:
        invoice = invoice_svc.get_by_id(UUID(id))
        data = invoice.model_dump(mode="json")
        if "customer" in includes:
            data["customer"] = _expand(services["customer"], invoice.customer)
        if "service_call" in includes:
            data["service_call"] = _expand(services["service_call"], invoice.service_call)
        return success_response(data).model_dump(mode="json")

    if payment_status and not customer_id:
        invoices = invoice_svc.list_by_payment_status(payment_status)
    else:
        invoices = invoice_svc.list_invoices(
            payment_status=payment_status,
            customer=UUID(customer_id) if customer_id else None,
        )
    return success_response(_dump(invoices)).model_dump(mode="json")

"""
FastAPI application factory.

Wires the document store, audit log, event bus, record services and the
authentication stack into one app. Everything external (store, Valkey,
signing secret) can be injected; anything not injected is resolved from
Vault at construction time.

Environment:
    FIELDSERVICE_STORE: "postgres" (default) or "memory"
    LOG_DIR: directory for rotating log files (console only when unset)
    LOG_LEVEL: root log level (default INFO)
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

from api.actions import create_actions_router
from api.base import success_response
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from auth.api import create_auth_router
from auth.config import AuthConfig
from auth.passwords import PasswordHasher
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.security_middleware import AuthMiddleware
from auth.service import AuthService
from auth.tokens import TokenManager
from clients.document_store import DocumentStore, PostgresDocumentStore
from clients.memory_store import InMemoryDocumentStore
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import get_database_url, get_jwt_secret, get_valkey_url
from core.audit import AuditLogger
from core.event_bus import EventBus
from core.events import ServiceCallCompleted
from core.handlers.service_call_completed_handler import handle_service_call_completed
from core.services.agent_service import AgentService
from core.services.customer_service import CustomerService
from core.services.equipment_service import EquipmentService
from core.services.invoice_service import InvoiceService
from core.services.quotation_service import QuotationService
from core.services.service_call_service import ServiceCallService
from core.services.user_service import UserService
from utils.logging_config import configure_logging, shutdown_logging

logger = logging.getLogger(__name__)


def build_store() -> DocumentStore:
    """Document store selected by FIELDSERVICE_STORE."""
    backend = os.getenv("FIELDSERVICE_STORE", "postgres").lower()
    if backend == "memory":
        logger.warning("Using in-memory document store; data is lost on restart")
        return InMemoryDocumentStore()
    if backend != "postgres":
        raise ValueError(f"Unknown FIELDSERVICE_STORE '{backend}'")

    store = PostgresDocumentStore(PostgresClient(get_database_url()))
    store.ensure_schema()
    return store


def build_services(store: DocumentStore, audit: AuditLogger, event_bus: EventBus) -> dict:
    """Record services keyed by domain, with event handlers subscribed."""
    customers = CustomerService(store, audit, event_bus)
    agents = AgentService(store, audit, event_bus)
    equipment = EquipmentService(store, audit, customers, event_bus)
    service_calls = ServiceCallService(store, audit, customers, agents, equipment, event_bus)
    quotations = QuotationService(store, audit, customers, equipment, service_calls, event_bus)
    invoices = InvoiceService(store, audit, customers, service_calls, event_bus)

    event_bus.subscribe(
        ServiceCallCompleted,
        handle_service_call_completed(agents, equipment),
    )

    return {
        "agent": agents,
        "customer": customers,
        "service_call": service_calls,
        "equipment": equipment,
        "quotation": quotations,
        "invoice": invoices,
    }


def build_auth_service(
    store: DocumentStore,
    audit: AuditLogger,
    valkey: ValkeyClient,
    jwt_secret: str,
    config: AuthConfig,
) -> AuthService:
    hasher = PasswordHasher()
    return AuthService(
        user_service=UserService(store, audit, hasher),
        tokens=TokenManager(jwt_secret, config),
        hasher=hasher,
        rate_limiter=RateLimiter(valkey, config),
        security_logger=SecurityLogger(store),
    )


def create_app(
    store: DocumentStore | None = None,
    valkey: ValkeyClient | None = None,
    jwt_secret: str | None = None,
    auth_config: AuthConfig | None = None,
    log_dir: str | None = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        store: Document store (default: build_store())
        valkey: Valkey client for login rate limiting (default: URL from Vault)
        jwt_secret: Token signing secret (default: from Vault)
        auth_config: Token and rate limit tunables
        log_dir: Log file directory (default: LOG_DIR env)

    Returns:
        Configured FastAPI app
    """
    store = store if store is not None else build_store()
    valkey = valkey if valkey is not None else ValkeyClient(get_valkey_url())
    jwt_secret = jwt_secret or get_jwt_secret()
    auth_config = auth_config or AuthConfig()
    log_dir = log_dir or os.getenv("LOG_DIR")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        handle = configure_logging(log_dir, os.getenv("LOG_LEVEL", "INFO").upper())
        logger.info("Field service API starting")
        try:
            yield
        finally:
            logger.info("Field service API stopping")
            valkey.close()
            shutdown_logging(handle)

    audit = AuditLogger(store)
    event_bus = EventBus()
    services = build_services(store, audit, event_bus)
    auth_service = build_auth_service(store, audit, valkey, jwt_secret, auth_config)

    app = FastAPI(title=auth_config.app_name, lifespan=lifespan)

    # Added last runs first: request ids wrap authentication
    app.add_middleware(AuthMiddleware, auth_service=auth_service)
    app.add_middleware(RequestIDMiddleware)

    register_error_handlers(app)

    app.include_router(create_auth_router(auth_service), prefix="/auth")
    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")

    @app.get("/health")
    async def health():
        return success_response({"status": "ok"}).model_dump(mode="json")

    app.state.store = store
    app.state.services = services
    app.state.auth_service = auth_service
    return app


def main() -> None:
    import uvicorn

    load_dotenv()
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run(create_app(), host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()

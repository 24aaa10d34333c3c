"""Shared test fixtures for the field service test suite."""

from itertools import count

import pytest
from uuid import UUID
from pathlib import Path

from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env")

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from utils.user_context import user_context, clear_current_user_id


# =============================================================================
# TEST USER CONSTANTS
# =============================================================================

# Primary test user - use for single-user tests
TEST_USER_ID = UUID("00000000-0000-0000-0000-000000000001")
TEST_USER_EMAIL = "testuser@test.local"

# Secondary test user - use for ownership isolation tests
TEST_USER_B_ID = UUID("00000000-0000-0000-0000-000000000002")
TEST_USER_B_EMAIL = "testuser-b@test.local"


# =============================================================================
# USER CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_user_context():
    """Ensure clean user context before and after each test."""
    clear_current_user_id()
    yield
    clear_current_user_id()


@pytest.fixture
def test_user_id() -> UUID:
    """The primary test user's ID."""
    return TEST_USER_ID


@pytest.fixture
def test_user_b_id() -> UUID:
    """The secondary test user's ID (for isolation tests)."""
    return TEST_USER_B_ID


@pytest.fixture
def as_test_user(test_user_id):
    """Context manager that sets primary test user context."""
    with user_context(test_user_id):
        yield test_user_id


@pytest.fixture
def as_test_user_b(test_user_b_id):
    """Context manager that sets secondary test user context."""
    with user_context(test_user_b_id):
        yield test_user_b_id


# =============================================================================
# STORAGE FIXTURES
# =============================================================================


@pytest.fixture
def store():
    """Fresh in-memory document store per test."""
    from clients.memory_store import InMemoryDocumentStore
    return InMemoryDocumentStore()


@pytest.fixture
def audit(store):
    from core.audit import AuditLogger
    return AuditLogger(store)


@pytest.fixture
def event_bus():
    from core.event_bus import EventBus
    return EventBus()


@pytest.fixture
def services(store, audit, event_bus):
    """Every record service, wired as the application wires them."""
    from app import build_services
    return build_services(store, audit, event_bus)


@pytest.fixture
def agent_service(services):
    return services["agent"]


@pytest.fixture
def customer_service(services):
    return services["customer"]


@pytest.fixture
def service_call_service(services):
    return services["service_call"]


@pytest.fixture
def equipment_service(services):
    return services["equipment"]


@pytest.fixture
def quotation_service(services):
    return services["quotation"]


@pytest.fixture
def invoice_service(services):
    return services["invoice"]


# =============================================================================
# VALKEY FIXTURES
# =============================================================================


class FakeValkey:
    """Dict-backed stand-in for ValkeyClient. TTLs are stored, never elapsed."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.closed = False

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def delete(self, key: str) -> bool:
        self.ttls.pop(key, None)
        return self.values.pop(key, None) is not None

    def ttl(self, key: str) -> int:
        if key not in self.values:
            return -2
        return self.ttls.get(key, -1)

    def incr(self, key: str) -> int:
        value = int(self.values.get(key, "0")) + 1
        self.values[key] = str(value)
        return value

    def expire(self, key: str, seconds: int) -> bool:
        if key not in self.values:
            return False
        self.ttls[key] = seconds
        return True

    def incr_with_window(self, key: str, seconds: int) -> int:
        value = self.incr(key)
        self.expire(key, seconds)
        return value

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_valkey():
    return FakeValkey()


# =============================================================================
# RECORD BUILDERS (all run as the primary test user)
# =============================================================================

_serial = count(1)


@pytest.fixture
def make_agent(as_test_user, agent_service):
    from core.models import AgentCreate

    def make(**overrides):
        n = next(_serial)
        fields = {
            "first_name": "Sipho",
            "last_name": "Dlamini",
            "employee_id": f"EMP-{n:04d}",
            "email": f"agent{n}@coolfix.co.za",
            "phone_number": "0821112222",
        }
        fields.update(overrides)
        return agent_service.create(AgentCreate(**fields))

    return make


@pytest.fixture
def make_residential(as_test_user, customer_service):
    from core.models import CustomerCreate

    def make(**overrides):
        n = next(_serial)
        fields = {
            "customer_id": f"RES-{n:04d}",
            "contact_first_name": "Thandi",
            "contact_last_name": "Nkosi",
            "email": f"home{n}@example.com",
            "phone_number": "0823334444",
            "physical_address": "12 Main Rd, Rondebosch",
        }
        fields.update(overrides)
        return customer_service.create(CustomerCreate(**fields))

    return make


@pytest.fixture
def make_business(as_test_user, customer_service):
    from core.models import CustomerCreate

    def make(**overrides):
        n = next(_serial)
        fields = {
            "customer_type": "business",
            "customer_id": f"BUS-{n:04d}",
            "business_name": f"Harbour Foods {n}",
            "contact_first_name": "Pieter",
            "contact_last_name": "van Wyk",
            "email": f"ops{n}@harbourfoods.co.za",
            "phone_number": "0215556666",
            "sites": [
                {"site_name": "Head Office", "address": "1 Dock Rd"},
                {"site_name": "Cold Store", "address": "9 Rail St"},
            ],
        }
        fields.update(overrides)
        return customer_service.create(CustomerCreate(**fields))

    return make


@pytest.fixture
def make_equipment(as_test_user, equipment_service):
    from core.models import EquipmentCreate

    def make(customer, **overrides):
        fields = {"customer": customer.id, "equipment_type": "Geyser", "brand": "Kwikot"}
        fields.update(overrides)
        return equipment_service.create(EquipmentCreate(**fields))

    return make


@pytest.fixture
def make_call(as_test_user, service_call_service):
    from core.models import ServiceCallCreate

    def make(customer, **overrides):
        fields = {
            "customer": customer.id,
            "title": "Geyser not heating",
            "description": "No hot water since Monday",
            "service_type": "Plumbing",
        }
        fields.update(overrides)
        return service_call_service.create(ServiceCallCreate(**fields))

    return make


@pytest.fixture
def complete_call(service_call_service):
    """Walk a call through in-progress to completed."""

    def complete(call):
        service_call_service.update(call.id, {"status": "in-progress"})
        return service_call_service.update(call.id, {"status": "completed"})

    return complete


@pytest.fixture
def make_quotation(as_test_user, quotation_service):
    from core.models import QuotationCreate

    def make(customer, **overrides):
        fields = {
            "customer": customer.id,
            "service_type": "Plumbing",
            "title": "Replace geyser element",
            "line_items": [
                {"description": "Labour", "quantity": 2, "unit_price": 100},
                {"description": "Element", "quantity": 1, "unit_price": 50},
            ],
        }
        fields.update(overrides)
        return quotation_service.create(QuotationCreate(**fields))

    return make


@pytest.fixture
def make_invoice(as_test_user, invoice_service):
    from core.models import InvoiceCreate

    def make(call, **overrides):
        fields = {
            "service_call": call.id,
            "customer": call.customer,
            "line_items": [
                {"description": "Labour", "quantity": 2, "unit_price": 100},
                {"description": "Element", "quantity": 1, "unit_price": 50},
            ],
        }
        fields.update(overrides)
        return invoice_service.create(InvoiceCreate(**fields))

    return make


# =============================================================================
# FULL APPLICATION
# =============================================================================


@pytest.fixture
def live_app(store, fake_valkey):
    """The real application over the in-memory store and fake Valkey."""
    from app import create_app
    from auth.config import AuthConfig

    return create_app(
        store=store,
        valkey=fake_valkey,
        jwt_secret="test-signing-secret",
        auth_config=AuthConfig(rate_limit_attempts=3, rate_limit_window_minutes=5),
    )


@pytest.fixture
def live_client(live_app):
    from starlette.testclient import TestClient
    return TestClient(live_app, raise_server_exceptions=False)


@pytest.fixture
def registration_payload():
    return {
        "user_name": "coolfix",
        "email": "owner@coolfix.co.za",
        "password": "secret1",
        "business_name": "CoolFix Refrigeration",
        "business_registration_number": "2020/123456/07",
        "tax_number": "9012345678",
        "vat_number": "4123456789",
        "phone_number": "0211234567",
        "physical_address": "3 Long St, Cape Town",
    }

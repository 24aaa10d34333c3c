"""API test fixtures - authenticated TestClient over in-memory services."""

from datetime import timedelta
from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from auth.security_middleware import AuthMiddleware
from auth.service import AuthService
from auth.types import AuthenticatedUser
from utils.timezone import now_utc


# =============================================================================
# AUTH FIXTURES
# =============================================================================


@pytest.fixture
def mock_auth_service(test_user_id):
    mock = Mock(spec=AuthService)
    mock.authenticate.return_value = AuthenticatedUser(
        user_id=test_user_id,
        expires_at=now_utc() + timedelta(days=1),
    )
    return mock


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(mock_auth_service, services):
    """FastAPI app with auth middleware, error handlers, and data/actions routes."""
    from api.data import create_data_router
    from api.actions import create_actions_router

    app = FastAPI()
    app.add_middleware(AuthMiddleware, auth_service=mock_auth_service)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")

    return app


@pytest.fixture
def client(app):
    """Authenticated test client."""
    c = TestClient(app, raise_server_exceptions=False)
    c.headers["Authorization"] = "Bearer test-token"
    return c


@pytest.fixture
def unauthed_client(app):
    """Unauthenticated test client (no bearer token)."""
    return TestClient(app, raise_server_exceptions=False)

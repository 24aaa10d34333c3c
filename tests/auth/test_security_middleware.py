"""Tests for AuthMiddleware - bearer token validation and user context."""

from datetime import timedelta
from unittest.mock import Mock
from uuid import uuid4

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from auth.exceptions import InvalidTokenError
from auth.security_middleware import AuthMiddleware
from auth.service import AuthService
from auth.types import AuthenticatedUser
from utils.timezone import now_utc
from utils.user_context import get_current_user_id


@pytest.fixture
def mock_auth_service():
    """Mock AuthService."""
    return Mock(spec=AuthService)


@pytest.fixture
def app_with_middleware(mock_auth_service):
    """FastAPI app with auth middleware."""
    app = FastAPI()

    app.add_middleware(AuthMiddleware, auth_service=mock_auth_service)

    @app.get("/api/data")
    async def protected_route(request: Request):
        return {
            "user_id": str(request.state.user_id),
            "context_user_id": str(get_current_user_id()),
        }

    @app.post("/auth/login")
    async def login():
        return {"public": True}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/auth/profile")
    async def profile(request: Request):
        return {"user_id": str(request.state.user_id)}

    return app


@pytest.fixture
def client(app_with_middleware):
    return TestClient(app_with_middleware)


def _principal(user_id=None):
    return AuthenticatedUser(user_id=user_id or uuid4(), expires_at=now_utc() + timedelta(days=1))


class TestPublicPaths:
    """Public paths skip authentication."""

    def test_login_needs_no_token(self, client, mock_auth_service):
        response = client.post("/auth/login")

        assert response.status_code == 200
        mock_auth_service.authenticate.assert_not_called()

    def test_health_needs_no_token(self, client):
        assert client.get("/health").status_code == 200

    def test_profile_is_protected(self, client):
        """Only exact public paths bypass auth."""
        assert client.get("/auth/profile").status_code == 401


class TestProtectedPaths:

    def test_missing_token(self, client):
        response = client.get("/api/data")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["error"]["code"] == "NOT_AUTHENTICATED"

    def test_wrong_scheme(self, client):
        response = client.get("/api/data", headers={"Authorization": "Basic abc"})
        assert response.status_code == 401

    def test_invalid_token(self, client, mock_auth_service):
        mock_auth_service.authenticate.side_effect = InvalidTokenError("expired")

        response = client.get("/api/data", headers={"Authorization": "Bearer stale"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_TOKEN"

    def test_valid_token_sets_user(self, client, mock_auth_service):
        user_id = uuid4()
        mock_auth_service.authenticate.return_value = _principal(user_id)

        response = client.get("/api/data", headers={"Authorization": "Bearer good-token"})

        assert response.status_code == 200
        assert response.json() == {"user_id": str(user_id), "context_user_id": str(user_id)}
        mock_auth_service.authenticate.assert_called_once_with("good-token")

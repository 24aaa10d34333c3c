"""HTTP routes for authentication."""

import ipaddress

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse

from auth.exceptions import (
    InvalidCredentialsError,
    RateLimitedError,
    UserInactiveError,
)
from auth.service import AuthResult, AuthService
from auth.types import LoginRequest, TokenResponse
from api.base import success_response, error_response, ErrorCodes
from core.models import UserCreate


def _get_client_ip(request: Request) -> str | None:
    """Extract valid IP address from request, or None if invalid."""
    if not request.client:
        return None
    host = request.client.host
    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        return None


def _token_payload(result: AuthResult) -> dict:
    return TokenResponse(
        access_token=result.token.token,
        expires_at=result.token.expires_at,
        user=result.user.public(),
    ).model_dump(mode="json")


def create_auth_router(auth_service: AuthService) -> APIRouter:
    """Create auth router with injected service."""
    router = APIRouter(tags=["auth"])

    @router.post("/register", status_code=201)
    async def register(request: Request, body: UserCreate):
        """Register a business account and return an access token."""
        result = auth_service.register(
            body,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
        return success_response(_token_payload(result)).model_dump(mode="json")

    @router.post("/login")
    async def login(request: Request, body: LoginRequest):
        """Exchange email and password for an access token."""
        try:
            result = auth_service.login(
                email=body.email,
                password=body.password,
                ip_address=_get_client_ip(request),
                user_agent=request.headers.get("User-Agent"),
            )
        except RateLimitedError as e:
            return JSONResponse(
                status_code=429,
                headers={"Retry-After": str(e.retry_after_seconds)},
                content=error_response(
                    ErrorCodes.RATE_LIMITED,
                    f"Too many requests. Please wait {e.retry_after_seconds} seconds.",
                ).model_dump(mode="json"),
            )
        except InvalidCredentialsError:
            return JSONResponse(
                status_code=401,
                content=error_response(
                    ErrorCodes.INVALID_CREDENTIALS,
                    "Invalid email or password",
                ).model_dump(mode="json"),
            )
        except UserInactiveError:
            return JSONResponse(
                status_code=403,
                content=error_response(
                    ErrorCodes.ACCOUNT_INACTIVE,
                    "Account is deactivated",
                ).model_dump(mode="json"),
            )

        return success_response(_token_payload(result)).model_dump(mode="json")

    @router.get("/profile")
    async def get_profile(request: Request):
        """Current account's profile (requires authentication)."""
        user = auth_service.get_profile(request.state.user_id)
        return success_response(user.public()).model_dump(mode="json")

    @router.put("/profile")
    async def update_profile(request: Request, body: dict = Body(...)):
        """Update the current account's profile.

        Changing user_name, business_name, business_registration_number
        or is_super_user is rejected with the offending fields listed.
        """
        user = auth_service.update_profile(
            request.state.user_id,
            body,
            ip_address=_get_client_ip(request),
        )
        return success_response(user.public()).model_dump(mode="json")

    @router.get("/field-permissions")
    async def field_permissions():
        """Immutable and editable fields for every entity type."""
        return success_response(auth_service.field_permissions()).model_dump(mode="json")

    return router

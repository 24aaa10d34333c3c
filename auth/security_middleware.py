"""Security middleware for FastAPI - bearer token validation and user context."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from auth.exceptions import InvalidTokenError
from auth.service import AuthService
from api.base import error_response, ErrorCodes
from utils.user_context import set_current_user_id, clear_current_user_id


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that validates the bearer token and sets user context.

    For protected routes:
    1. Extracts the token from 'Authorization: Bearer <token>'
    2. Verifies it via AuthService
    3. Sets user_id in request.state and user context (for owner scoping)
    4. Clears context after request completes

    Public paths bypass authentication entirely.
    """

    PUBLIC_PATHS = [
        "/auth/register",
        "/auth/login",
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(self, app, auth_service: AuthService):
        super().__init__(app)
        self._auth_service = auth_service

    def _is_public_path(self, path: str) -> bool:
        """Check if path is in public paths list."""
        for public_path in self.PUBLIC_PATHS:
            if path == public_path or path.startswith(public_path + "/"):
                return True
        return False

    @staticmethod
    def _bearer_token(request: Request) -> str | None:
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return token.strip()

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        path = request.url.path

        if self._is_public_path(path):
            return await call_next(request)

        token = self._bearer_token(request)

        if not token:
            return JSONResponse(
                status_code=401,
                headers={"WWW-Authenticate": "Bearer"},
                content=error_response(
                    ErrorCodes.NOT_AUTHENTICATED,
                    "Authentication required",
                ).model_dump(mode="json"),
            )

        try:
            principal = self._auth_service.authenticate(token)
        except InvalidTokenError:
            return JSONResponse(
                status_code=401,
                headers={"WWW-Authenticate": "Bearer"},
                content=error_response(
                    ErrorCodes.INVALID_TOKEN,
                    "Invalid or expired token",
                ).model_dump(mode="json"),
            )

        set_current_user_id(principal.user_id)
        request.state.user_id = principal.user_id

        try:
            response = await call_next(request)
            return response
        finally:
            # Always clear context
            clear_current_user_id()

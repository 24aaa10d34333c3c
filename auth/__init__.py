"""Authentication and authorization modules."""

from auth.exceptions import (
    AuthError,
    InvalidTokenError,
    InvalidCredentialsError,
    RateLimitedError,
    UserInactiveError,
)
from auth.types import (
    LoginRequest,
    AccessToken,
    TokenResponse,
    AuthenticatedUser,
)
from auth.config import AuthConfig
from auth.passwords import PasswordHasher
from auth.tokens import TokenManager
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.service import AuthService, AuthResult
from auth.security_middleware import AuthMiddleware
from auth.api import create_auth_router

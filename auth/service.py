"""Authentication service - orchestrates registration, login and token checks."""

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from auth.exceptions import (
    InvalidCredentialsError, InvalidTokenError, RateLimitedError, UserInactiveError,
)
from auth.passwords import PasswordHasher
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.tokens import TokenManager
from auth.types import AccessToken, AuthenticatedUser
from core.exceptions import ConflictError
from core.models import User, UserCreate
from core.services.user_service import UserService

logger = logging.getLogger(__name__)


@dataclass
class AuthResult:
    """A user together with a freshly issued token."""

    user: User
    token: AccessToken


class AuthService:
    """Orchestrates password authentication.

    Handles:
    - Registration (account creation plus first token)
    - Login (rate limited per email, no account enumeration)
    - Token verification for the bearer middleware
    """

    def __init__(
        self,
        user_service: UserService,
        tokens: TokenManager,
        hasher: PasswordHasher,
        rate_limiter: RateLimiter,
        security_logger: SecurityLogger,
    ):
        self._users = user_service
        self._tokens = tokens
        self._hasher = hasher
        self._rate_limiter = rate_limiter
        self._security_logger = security_logger

    def register(
        self,
        data: UserCreate,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuthResult:
        """Create an account and sign it in.

        Raises:
            ConflictError: If the user name or email is taken.
        """
        try:
            user = self._users.register(data)
        except ConflictError as e:
            self._security_logger.log(
                SecurityEvent.REGISTRATION_REJECTED,
                email=data.email,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": str(e)},
            )
            raise

        self._security_logger.log(
            SecurityEvent.USER_REGISTERED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return AuthResult(user=user, token=self._tokens.issue(user.id))

    def login(
        self,
        email: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuthResult:
        """Verify credentials and issue a token.

        Unknown emails and wrong passwords raise the same error.

        Raises:
            RateLimitedError: If too many attempts for this email.
            InvalidCredentialsError: If email or password is wrong.
            UserInactiveError: If the account is deactivated.
        """
        try:
            self._rate_limiter.check_rate_limit(email)
        except RateLimitedError:
            self._security_logger.log(
                SecurityEvent.RATE_LIMITED,
                email=email,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise

        user = self._users.get_by_email(email)
        if user is None or not self._hasher.verify(password, user.password_hash):
            self._security_logger.log(
                SecurityEvent.LOGIN_FAILED,
                email=email,
                user_id=user.id if user else None,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"remaining_attempts": self._rate_limiter.get_remaining_attempts(email)},
            )
            raise InvalidCredentialsError("Invalid email or password")

        if not user.is_active:
            self._security_logger.log(
                SecurityEvent.LOGIN_INACTIVE,
                email=email,
                user_id=user.id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise UserInactiveError("Account is deactivated")

        self._rate_limiter.reset_rate_limit(email)
        user = self._users.record_login(user)

        self._security_logger.log(
            SecurityEvent.LOGIN_SUCCEEDED,
            email=email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return AuthResult(user=user, token=self._tokens.issue(user.id))

    def authenticate(self, token: str) -> AuthenticatedUser:
        """Resolve a bearer token to an active principal.

        Raises:
            InvalidTokenError: If the token is invalid or its user no longer
                exists or is inactive.
        """
        principal = self._tokens.verify(token)
        user = self._users.find_by_id(principal.user_id)
        if user is None or not user.is_active:
            raise InvalidTokenError("Token user is unknown or inactive")
        return principal

    def get_profile(self, user_id: UUID) -> User:
        return self._users.get_by_id(user_id)

    def update_profile(
        self,
        user_id: UUID,
        patch: dict[str, Any],
        ip_address: str | None = None,
    ) -> User:
        """Apply a profile patch and record which fields changed."""
        user = self._users.update_profile(user_id, patch)
        self._security_logger.log(
            SecurityEvent.PROFILE_UPDATED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
            details={"fields": sorted(patch.keys())},
        )
        return user

    def field_permissions(self) -> dict[str, dict[str, list[str]]]:
        return self._users.field_permissions()

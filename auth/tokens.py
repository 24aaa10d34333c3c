"""Signed bearer tokens (JWT via python-jose).

Tokens are stateless: the subject is the user id and the expiry is
carried in the token. Nothing is stored server-side.
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

from jose import JWTError, jwt

from auth.config import AuthConfig
from auth.exceptions import InvalidTokenError
from auth.types import AccessToken, AuthenticatedUser
from utils.timezone import now_utc


class TokenManager:
    """Issues and verifies access tokens."""

    def __init__(self, secret: str, config: AuthConfig):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        self._secret = secret
        self._config = config

    def issue(self, user_id: UUID) -> AccessToken:
        """Create a token for a user."""
        issued_at = now_utc()
        expires_at = issued_at + timedelta(days=self._config.token_expiry_days)
        claims = {
            "sub": str(user_id),
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "iss": self._config.app_name,
        }
        token = jwt.encode(claims, self._secret, algorithm=self._config.token_algorithm)
        return AccessToken(
            token=token,
            user_id=user_id,
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def verify(self, token: str) -> AuthenticatedUser:
        """Decode a token and return the principal it names.

        Raises:
            InvalidTokenError: If the token is malformed, badly signed,
                expired or has no valid subject.
        """
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._config.token_algorithm],
                issuer=self._config.app_name,
            )
        except JWTError as e:
            raise InvalidTokenError(str(e)) from e

        try:
            user_id = UUID(claims["sub"])
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidTokenError("Token has no valid subject") from e

        expires_at = datetime.fromtimestamp(claims["exp"], tz=timezone.utc)
        return AuthenticatedUser(user_id=user_id, expires_at=expires_at)

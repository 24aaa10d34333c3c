"""Typed exceptions for auth failures."""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class InvalidTokenError(AuthError):
    """Access token is malformed, badly signed, or expired."""


class InvalidCredentialsError(AuthError):
    """
    Email/password pair did not match.

    Raised for unknown emails too, so responses never reveal which
    accounts exist.
    """


class RateLimitedError(AuthError):
    """Too many attempts. Client should wait before retrying."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limited. Retry after {retry_after_seconds} seconds.")


class UserInactiveError(AuthError):
    """User account is deactivated. Login not permitted."""

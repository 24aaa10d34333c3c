"""Login throttling per business account email.

Each login attempt for an email counts against a Valkey counter whose
window restarts on every attempt, so an account under a guessing attack
stays locked until the attempts stop. A successful login clears the count.
"""

from clients.valkey_client import ValkeyClient
from auth.config import AuthConfig
from auth.exceptions import RateLimitedError


class RateLimiter:
    """Counts login attempts per account email."""

    KEY_PREFIX = "ratelimit:login:"

    def __init__(self, valkey: ValkeyClient, config: AuthConfig):
        self._valkey = valkey
        self._max_attempts = config.rate_limit_attempts
        self._window_seconds = config.rate_limit_window_minutes * 60

    def _key(self, email: str) -> str:
        # Emails are stored lowercased; "Owner@" and "owner@" share a counter
        return f"{self.KEY_PREFIX}{email.strip().lower()}"

    def check_rate_limit(self, email: str) -> None:
        """Count this attempt.

        Raises:
            RateLimitedError: Once the attempt count passes the configured
                limit, carrying the seconds left in the window.
        """
        key = self._key(email)
        count = self._valkey.incr_with_window(key, self._window_seconds)

        if count > self._max_attempts:
            raise RateLimitedError(retry_after_seconds=max(self._valkey.ttl(key), 1))

    def reset_rate_limit(self, email: str) -> None:
        self._valkey.delete(self._key(email))

    def get_remaining_attempts(self, email: str) -> int:
        """Attempts left before the account is locked out."""
        current = self._valkey.get(self._key(email))
        used = int(current) if current is not None else 0
        return max(self._max_attempts - used, 0)

"""
Valkey (Redis-compatible) client backing the login throttle.

The only state kept here is one short-lived attempt counter per account
email; records live in the document store. The connection URL comes from
Vault. Fail-fast: a server that cannot be reached raises at startup, and
no call returns a fallback value.
"""

import logging

import redis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Attempt counters with expiry.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0")
        attempts = client.incr_with_window("ratelimit:login:owner@coolfix.co.za", 900)
    """

    def __init__(self, url: str):
        """
        Connect and verify the server answers.

        Raises:
            redis.ConnectionError: If the server cannot be reached
        """
        self._client = redis.from_url(url, decode_responses=True)
        self._client.ping()
        logger.info("ValkeyClient connected")

    def get(self, key: str) -> str | None:
        """Current value, or None if the key has expired or never existed."""
        return self._client.get(key)

    def delete(self, key: str) -> bool:
        """Returns True if the key existed."""
        return self._client.delete(key) > 0

    def ttl(self, key: str) -> int:
        """
        Seconds until the key expires.

        Returns:
            -2 if key doesn't exist
            -1 if key has no expiration
            Positive int: remaining seconds
        """
        return self._client.ttl(key)

    def incr_with_window(self, key: str, seconds: int) -> int:
        """
        Count one attempt and restart the key's expiry window.

        INCR and EXPIRE run in one MULTI/EXEC block, so a counter is never
        left behind without a TTL.
        """
        pipe = self._client.pipeline(transaction=True)
        pipe.incr(key)
        pipe.expire(key, seconds)
        count, _ = pipe.execute()
        return count

    def close(self) -> None:
        self._client.close()
        logger.info("ValkeyClient closed")

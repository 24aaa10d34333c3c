"""Password hashing with passlib (bcrypt)."""

from passlib.context import CryptContext


class PasswordHasher:
    """Hashes and verifies account passwords."""

    def __init__(self, schemes: list[str] | None = None):
        self._context = CryptContext(schemes=schemes or ["bcrypt"], deprecated="auto")

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        """False for a wrong password or an unrecognised hash."""
        try:
            return self._context.verify(password, password_hash)
        except ValueError:
            return False

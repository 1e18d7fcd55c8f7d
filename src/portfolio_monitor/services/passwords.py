"""Credential store: bcrypt password hashing through passlib."""
import logging

from passlib.context import CryptContext
from passlib.exc import UnknownHashError

logger = logging.getLogger(__name__)

DEFAULT_ROUNDS = 12


class PasswordHasher:
    """Hashes and verifies passwords. Owns no other state."""

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        """Initialize the bcrypt context.

        Args:
            rounds: bcrypt cost factor (log2 of the work). 12 in production;
                tests use the minimum (4) to stay fast.
        """
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )
        # Used to burn the same time on unknown usernames as on wrong passwords
        self._dummy_hash = self._context.hash("not-a-real-password")

    def hash(self, password: str) -> str:
        """Return a salted bcrypt hash; two calls never return the same string."""
        return self._context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        """Check a password against a stored hash. Malformed hashes verify as False."""
        try:
            return self._context.verify(password, password_hash)
        except (UnknownHashError, ValueError, TypeError) as exc:
            logger.warning("Password verification against malformed hash: %s", type(exc).__name__)
            return False

    def verify_dummy(self, password: str) -> bool:
        """Spend one verification without a real user; always False."""
        self._context.verify(password, self._dummy_hash)
        return False

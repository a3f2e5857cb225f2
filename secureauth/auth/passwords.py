"""Password hashing helpers."""
from __future__ import annotations

from typing import Optional

from passlib.context import CryptContext

from ..config import settings


class PasswordVerifier:
    """Hash and check passwords with a strong adaptive hash."""

    def __init__(self, *, rounds: Optional[int] = None) -> None:
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds or settings.BCRYPT_ROUNDS,
        )

    def hash(self, password: str) -> str:
        """Hash ``password`` using bcrypt."""

        if not isinstance(password, str):
            raise TypeError("password must be a string")
        return self._context.hash(password)

    def verify(self, password: str, hashed_password: str) -> bool:
        """Return ``True`` if ``password`` matches ``hashed_password``."""

        if not password or not hashed_password:
            return False
        try:
            return self._context.verify(password, hashed_password)
        except (TypeError, ValueError):
            return False

    def needs_rehash(self, hashed_password: str) -> bool:
        """Return ``True`` if the hash should be upgraded."""

        if not hashed_password:
            return True
        return self._context.needs_update(hashed_password)


_default_verifier = PasswordVerifier()


def hash_password(password: str) -> str:
    return _default_verifier.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    return _default_verifier.verify(password, hashed_password)


def needs_rehash(hashed_password: str) -> bool:
    return _default_verifier.needs_rehash(hashed_password)


__all__ = ["PasswordVerifier", "hash_password", "needs_rehash", "verify_password"]

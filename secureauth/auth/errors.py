"""Error kinds reported by the authentication core."""
from __future__ import annotations

from enum import Enum


class AuthError(str, Enum):
    """Recoverable reasons a login attempt failed.

    The values are stable strings suitable for showing to the user or for
    looking up a translated message.
    """

    NOT_FOUND = "not_found"
    NOT_ACTIVATED = "not_activated"
    WRONG_PASSWORD = "wrong_password"
    STORE_UNAVAILABLE = "store_unavailable"


class StoreUnavailableError(RuntimeError):
    """Raised by user and token stores when the backend cannot be reached."""


__all__ = ["AuthError", "StoreUnavailableError"]

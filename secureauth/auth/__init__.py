"""Authentication helpers and models."""

from .cookies import AutologinPayload, CookieCodec
from .core import AuthContext, AuthOptions, Authenticator, LoginResult, SessionSnapshot
from .errors import AuthError, StoreUnavailableError
from .passwords import PasswordVerifier, hash_password, needs_rehash, verify_password
from .service import build_authenticator, init_auth_storage

__all__ = [
    "AuthContext",
    "AuthError",
    "AuthOptions",
    "Authenticator",
    "AutologinPayload",
    "CookieCodec",
    "LoginResult",
    "PasswordVerifier",
    "SessionSnapshot",
    "StoreUnavailableError",
    "build_authenticator",
    "hash_password",
    "init_auth_storage",
    "needs_rehash",
    "verify_password",
]

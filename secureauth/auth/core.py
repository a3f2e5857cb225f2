"""Login, logout and remember-me orchestration."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from ..config import Settings, settings as default_settings
from .cookies import AutologinPayload, CookieCodec, CookieTransport
from .errors import AuthError, StoreUnavailableError
from .passwords import PasswordVerifier
from .session import SessionState
from .tokens import TokenStore, generate_token, hash_token
from .users import UserRecord, UserStore


logger = logging.getLogger(__name__)

_TimeProvider = Callable[[], datetime]

LOGGEDIN_KEY = "loggedin"
USER_KEY = "user"


def _default_time_provider() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AuthOptions:
    """Tunables for :class:`Authenticator`."""

    secret: str
    cookie_name: str = "autologin"
    cookie_expire: int = 5184000
    cookie_encrypt: bool = True
    hash_algorithm: str = "sha256"
    identification: str = "username"
    primary_key: str = "id"
    password_field: str = "hashed_password"
    # one remember grant survives each explicit login
    purge_on_login: bool = True

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> "AuthOptions":
        source = source or default_settings
        return cls(
            secret=source.SESSION_SECRET,
            cookie_name=source.AUTOLOGIN_COOKIE_NAME,
            cookie_expire=source.AUTOLOGIN_COOKIE_EXPIRE,
            cookie_encrypt=source.AUTOLOGIN_COOKIE_ENCRYPT,
            hash_algorithm=source.AUTOLOGIN_HASH_ALGORITHM,
            identification=source.IDENTIFICATION_FIELD,
            primary_key=source.PRIMARY_KEY,
            password_field=source.PASSWORD_FIELD,
            purge_on_login=source.AUTOLOGIN_PURGE_ON_LOGIN,
        )


@dataclass
class AuthContext:
    """Everything the core needs to know about the current request."""

    session: SessionState
    cookies: CookieTransport
    error: Optional[AuthError] = None
    autologin_checked: bool = False


@dataclass(frozen=True)
class LoginResult:
    ok: bool
    error: Optional[AuthError] = None
    remembered: bool = False

    def __bool__(self) -> bool:
        return self.ok


@dataclass(frozen=True)
class SessionSnapshot:
    logged_in: bool
    user: Optional[UserRecord] = None

    def get(self, field: str, default: Any = None) -> Any:
        if not self.logged_in or self.user is None:
            return default
        return self.user.get(field, default)


class Authenticator:
    """Authenticate users and keep them signed in across requests.

    Stores are injected once; every operation takes the :class:`AuthContext`
    of the request it acts on.
    """

    def __init__(
        self,
        users: UserStore,
        tokens: TokenStore,
        *,
        options: Optional[AuthOptions] = None,
        passwords: Optional[PasswordVerifier] = None,
        codec: Optional[CookieCodec] = None,
        time_provider: Optional[_TimeProvider] = None,
    ) -> None:
        self.users = users
        self.tokens = tokens
        self.options = options or AuthOptions.from_settings()
        self.passwords = passwords or PasswordVerifier()
        self.codec = codec or CookieCodec(
            self.options.secret,
            encrypt=self.options.cookie_encrypt,
            max_age=self.options.cookie_expire,
        )
        self._time_provider: _TimeProvider = time_provider or _default_time_provider
        logger.debug("Authentication core initialized")

    def _now(self) -> datetime:
        return self._time_provider()

    # ------------------------------------------------------------------
    # Public API

    def begin_request(self, ctx: AuthContext) -> bool:
        """Run autologin once for ``ctx`` and report whether it is logged in."""

        if not ctx.autologin_checked:
            ctx.autologin_checked = True
            if not self.loggedin(ctx):
                self.autologin(ctx)
        return self.loggedin(ctx)

    def login(
        self,
        ctx: AuthContext,
        identification: str,
        password: str,
        remember: bool = False,
    ) -> LoginResult:
        """Check credentials and, when they match, sign the user in."""

        try:
            user = self.users.get(self.options.identification, identification)
        except StoreUnavailableError:
            logger.warning("User store unavailable during login", exc_info=True)
            return self._fail(ctx, AuthError.STORE_UNAVAILABLE)

        if not user:
            return self._fail(ctx, AuthError.NOT_FOUND)
        if not user.get("activated"):
            return self._fail(ctx, AuthError.NOT_ACTIVATED)
        if not self.passwords.verify(password, user.get(self.options.password_field) or ""):
            return self._fail(ctx, AuthError.WRONG_PASSWORD)

        self._store_user(ctx, user)
        ctx.error = None
        user_id = user[self.options.primary_key]
        logger.info("User %s logged in", user_id)

        remembered = False
        if remember:
            remembered = self.create_autologin(ctx, user_id)
            if not remembered:
                logger.warning("Could not create autologin token for user %s", user_id)
        return LoginResult(ok=True, remembered=remembered)

    def logout(self, ctx: AuthContext) -> None:
        """Revoke this device's remember grant and end the session."""

        user_id = self.userid(ctx)
        self.delete_autologin(ctx)
        ctx.session.destroy()
        ctx.session.set(LOGGEDIN_KEY, False)
        ctx.session.set(USER_KEY, None)
        if user_id is not None:
            logger.info("User %s logged out", user_id)

    def loggedin(self, ctx: AuthContext) -> bool:
        return bool(ctx.session.get(LOGGEDIN_KEY))

    def snapshot(self, ctx: AuthContext) -> SessionSnapshot:
        if not self.loggedin(ctx):
            return SessionSnapshot(logged_in=False)
        user = ctx.session.get(USER_KEY)
        return SessionSnapshot(logged_in=True, user=dict(user) if user else None)

    def current_user(self, ctx: AuthContext) -> Optional[UserRecord]:
        """Return the cached user record, or ``None`` when logged out."""

        return self.snapshot(ctx).user

    def userid(self, ctx: AuthContext) -> Optional[Any]:
        return self.snapshot(ctx).get(self.options.primary_key)

    def identification(self, ctx: AuthContext) -> Optional[Any]:
        return self.snapshot(ctx).get(self.options.identification)

    def hash(self, password: str) -> str:
        return self.passwords.hash(password)

    def error(self, ctx: AuthContext) -> Optional[AuthError]:
        """Return why the most recent login on ``ctx`` failed, if it did."""

        return ctx.error

    # ------------------------------------------------------------------
    # Remember-me tokens

    def autologin(self, ctx: AuthContext) -> bool:
        """Sign in from the remember-me cookie, rotating its token."""

        if self.loggedin(ctx):
            return False
        payload = self.read_cookie(ctx)
        if payload is None:
            return False

        old_hash = hash_token(payload.token, self.options.hash_algorithm)
        try:
            self.clean_expired()
            if not self.tokens.exists(payload.user_id, old_hash):
                return False

            user = self.users.get(self.options.primary_key, payload.user_id)
            if not user or not user.get("activated"):
                return False

            self._store_user(ctx, user)

            new_token = generate_token(
                self.options.secret, payload.user_id, self.options.hash_algorithm
            )
            new_hash = hash_token(new_token, self.options.hash_algorithm)
            if self.tokens.update(payload.user_id, old_hash, new_hash):
                self.write_cookie(ctx, AutologinPayload(payload.user_id, new_token))
                logger.debug("Rotated autologin token for user %s", payload.user_id)
            else:
                logger.warning(
                    "Autologin token for user %s was rotated concurrently", payload.user_id
                )
        except StoreUnavailableError:
            logger.warning("Token store unavailable during autologin", exc_info=True)
            self._reset_session(ctx)
            return False
        return True

    def create_autologin(self, ctx: AuthContext, user_id: Any) -> bool:
        """Mint a token for ``user_id`` and hand it to the client.

        The cookie only carries integer ids, so other key types are refused.
        """

        if not isinstance(user_id, int) or isinstance(user_id, bool):
            logger.warning("Autologin needs an integer %s, got %r", self.options.primary_key, user_id)
            return False
        token = generate_token(self.options.secret, user_id, self.options.hash_algorithm)
        try:
            self.clean_expired()
            if self.options.purge_on_login:
                self.tokens.purge(user_id)
            if not self.tokens.insert(user_id, hash_token(token, self.options.hash_algorithm)):
                return False
        except StoreUnavailableError:
            logger.warning("Token store unavailable while creating autologin", exc_info=True)
            return False
        self.write_cookie(ctx, AutologinPayload(user_id, token))
        return True

    def delete_autologin(self, ctx: AuthContext) -> None:
        """Remove the token named by the cookie, then the cookie itself."""

        if not ctx.cookies.get_cookie(self.options.cookie_name):
            return
        payload = self.read_cookie(ctx)
        if payload is not None:
            try:
                self.tokens.delete(
                    payload.user_id,
                    hash_token(payload.token, self.options.hash_algorithm),
                )
            except StoreUnavailableError:
                logger.warning("Token store unavailable during logout", exc_info=True)
        ctx.cookies.set_cookie(self.options.cookie_name, "", 0)

    def clean_expired(self) -> datetime:
        """Drop tokens older than the cookie lifetime and return the cutoff."""

        cutoff = self._now() - timedelta(seconds=self.options.cookie_expire)
        self.tokens.clean(cutoff)
        return cutoff

    def read_cookie(self, ctx: AuthContext) -> Optional[AutologinPayload]:
        return self.codec.decode(ctx.cookies.get_cookie(self.options.cookie_name))

    def write_cookie(self, ctx: AuthContext, payload: AutologinPayload) -> None:
        ctx.cookies.set_cookie(
            self.options.cookie_name,
            self.codec.encode(payload),
            self.options.cookie_expire,
        )

    # ------------------------------------------------------------------

    def _store_user(self, ctx: AuthContext, user: UserRecord) -> None:
        cached = {
            key: value
            for key, value in user.items()
            if key != self.options.password_field
        }
        ctx.session.set(USER_KEY, cached)
        ctx.session.set(LOGGEDIN_KEY, True)

    def _reset_session(self, ctx: AuthContext) -> None:
        ctx.session.set(LOGGEDIN_KEY, False)
        ctx.session.set(USER_KEY, None)

    def _fail(self, ctx: AuthContext, error: AuthError) -> LoginResult:
        ctx.error = error
        logger.info("Login failed: %s", error.value)
        return LoginResult(ok=False, error=error)


__all__ = [
    "AuthContext",
    "AuthOptions",
    "Authenticator",
    "LOGGEDIN_KEY",
    "LoginResult",
    "SessionSnapshot",
    "USER_KEY",
]

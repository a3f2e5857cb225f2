"""Encoding and transport of the remember-me cookie."""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Tuple

from cryptography.fernet import Fernet, InvalidToken


COOKIE_PATH = "/"
COOKIE_SAMESITE = "lax"


@dataclass(frozen=True)
class AutologinPayload:
    """Contents of the remember-me cookie.

    ``token`` is the plaintext token; only its hash is ever stored.
    """

    user_id: int
    token: str


class CookieCodec:
    """Turn :class:`AutologinPayload` values into opaque cookie strings.

    With ``encrypt`` enabled the payload is sealed with Fernet, otherwise it
    is signed with HMAC-SHA256 and travels in clear text. ``decode`` returns
    ``None`` for anything it did not produce itself.
    """

    def __init__(self, secret: str, *, encrypt: bool = True, max_age: Optional[int] = None) -> None:
        if not secret:
            raise ValueError("cookie secret must not be empty")
        self._encrypt = encrypt
        self._max_age = max_age
        self._signing_key = hashlib.sha256(b"secureauth.sign:" + secret.encode("utf-8")).digest()
        fernet_key = hashlib.sha256(b"secureauth.seal:" + secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(fernet_key))

    def encode(self, payload: AutologinPayload) -> str:
        data = json.dumps(
            {"id": payload.user_id, "key": payload.token},
            separators=(",", ":"),
            sort_keys=True,
        ).encode("utf-8")
        if self._encrypt:
            # padding is restored in _decrypt; "=" would force a quoted cookie value
            return self._fernet.encrypt(data).decode("ascii").rstrip("=")
        signature = hmac.new(self._signing_key, data, hashlib.sha256).digest()
        return f"{_b64encode(data)}.{_b64encode(signature)}"

    def decode(self, value: Any) -> Optional[AutologinPayload]:
        if isinstance(value, bytes):
            try:
                value = value.decode("ascii")
            except UnicodeDecodeError:
                return None
        if not value or not isinstance(value, str):
            return None

        data = self._decrypt(value) if self._encrypt else self._verify(value)
        if data is None:
            return None

        try:
            parsed = json.loads(data.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
        return _payload_from_dict(parsed)

    def _decrypt(self, value: str) -> Optional[bytes]:
        try:
            token = base64.urlsafe_b64encode(_b64decode(value))
            return self._fernet.decrypt(token, ttl=self._max_age)
        except (InvalidToken, TypeError, ValueError):
            return None

    def _verify(self, value: str) -> Optional[bytes]:
        if "." not in value:
            return None
        try:
            payload_b64, signature_b64 = value.split(".", 1)
            data = _b64decode(payload_b64)
            signature = _b64decode(signature_b64)
        except (ValueError, binascii.Error):
            return None
        expected = hmac.new(self._signing_key, data, hashlib.sha256).digest()
        if not hmac.compare_digest(signature, expected):
            return None
        return data


def _payload_from_dict(parsed: Any) -> Optional[AutologinPayload]:
    if not isinstance(parsed, dict):
        return None
    user_id = parsed.get("id")
    token = parsed.get("key")
    # bool is an int subclass; reject it explicitly
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        return None
    if not isinstance(token, str) or not token:
        return None
    return AutologinPayload(user_id=user_id, token=token)


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    decoded = base64.urlsafe_b64decode(data + padding)
    # the decoder ignores stray characters and unused trailing bits
    if not hmac.compare_digest(_b64encode(decoded), data):
        raise ValueError("non-canonical base64")
    return decoded


# Transport ----------------------------------------------------------------


class CookieTransport(Protocol):
    def get_cookie(self, name: str) -> Optional[str]: ...

    def set_cookie(self, name: str, value: str, max_age: int) -> None: ...


class MemoryCookieTransport:
    """A cookie jar that lives in memory, as a browser would keep it."""

    def __init__(self, cookies: Optional[Dict[str, str]] = None) -> None:
        self.cookies: Dict[str, str] = dict(cookies or {})

    def get_cookie(self, name: str) -> Optional[str]:
        return self.cookies.get(name)

    def set_cookie(self, name: str, value: str, max_age: int) -> None:
        if not value or max_age <= 0:
            self.cookies.pop(name, None)
        else:
            self.cookies[name] = value


class StarletteCookieTransport:
    """Read cookies from a request and queue writes for its response.

    Writes are visible to later ``get_cookie`` calls in the same request and
    are flushed onto the response with :meth:`apply`.
    """

    def __init__(self, request, *, secure: bool = False) -> None:
        self._incoming: Dict[str, str] = dict(request.cookies)
        self._pending: Dict[str, Tuple[str, int]] = {}
        self._secure = secure

    def get_cookie(self, name: str) -> Optional[str]:
        if name in self._pending:
            value, max_age = self._pending[name]
            return value if value and max_age > 0 else None
        return self._incoming.get(name)

    def set_cookie(self, name: str, value: str, max_age: int) -> None:
        self._pending[name] = (value, max_age)

    def apply(self, response) -> None:
        for name, (value, max_age) in self._pending.items():
            response.set_cookie(
                name,
                value,
                max_age=max(max_age, 0),
                expires=max(max_age, 0),
                path=COOKIE_PATH,
                httponly=True,
                secure=self._secure,
                samesite=COOKIE_SAMESITE,
            )


__all__ = [
    "AutologinPayload",
    "CookieCodec",
    "CookieTransport",
    "MemoryCookieTransport",
    "StarletteCookieTransport",
]

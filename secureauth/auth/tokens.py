"""Persistence and hashing for remember-me tokens."""
from __future__ import annotations

import hashlib
import logging
import secrets
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional, Protocol

from sqlalchemy import delete, func, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .errors import StoreUnavailableError
from .models import AutologinToken


logger = logging.getLogger(__name__)

_TimeProvider = Callable[[], datetime]

_tokens = AutologinToken.__table__  # type: ignore[attr-defined]


def _default_time_provider() -> datetime:
    return datetime.now(timezone.utc)


class TokenStore(Protocol):
    def insert(self, user_id: int, token_hash: str) -> bool: ...

    def exists(self, user_id: int, token_hash: str) -> bool: ...

    def update(self, user_id: int, old_hash: str, new_hash: str) -> bool: ...

    def delete(self, user_id: int, token_hash: str) -> None: ...

    def purge(self, user_id: int) -> None: ...

    def clean(self, cutoff: datetime) -> None: ...


def hash_token(token: str, algorithm: str = "sha256") -> str:
    """Return the hex digest stored server-side for ``token``."""

    return hashlib.new(algorithm, token.encode("utf-8")).hexdigest()


def generate_token(secret: str, user_id: int, algorithm: str = "sha256") -> str:
    """Return a fresh plaintext remember-me token for ``user_id``.

    The digest mixes 32 bytes from :mod:`secrets` with the server secret and
    the user id, so tokens are unpredictable even across processes sharing a
    random source.
    """

    material = b"".join(
        (
            secrets.token_bytes(32),
            secret.encode("utf-8"),
            str(user_id).encode("ascii"),
        )
    )
    return hashlib.new(algorithm, material).hexdigest()


class SQLTokenStore:
    """:class:`TokenStore` backed by the ``autologin_tokens`` table.

    Each call runs in its own transaction. ``update`` is a single conditional
    ``UPDATE`` so that the database serializes competing rotations.
    """

    def __init__(self, engine: Engine, *, time_provider: Optional[_TimeProvider] = None) -> None:
        self._engine = engine
        self._time_provider: _TimeProvider = time_provider or _default_time_provider

    def _now(self) -> datetime:
        return self._time_provider()

    @contextmanager
    def _begin(self) -> Iterator[Connection]:
        try:
            with self._engine.begin() as connection:
                yield connection
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("autologin token store unavailable") from exc

    def insert(self, user_id: int, token_hash: str) -> bool:
        statement = _tokens.insert().values(
            user_id=user_id,
            token_hash=token_hash,
            created_at=self._now(),
        )
        try:
            with self._begin() as connection:
                connection.execute(statement)
        except IntegrityError:
            logger.warning("Rejected autologin token insert for user %s", user_id)
            return False
        return True

    def exists(self, user_id: int, token_hash: str) -> bool:
        statement = select(func.count()).select_from(_tokens).where(
            _tokens.c.user_id == user_id,
            _tokens.c.token_hash == token_hash,
        )
        with self._begin() as connection:
            return bool(connection.execute(statement).scalar_one())

    def update(self, user_id: int, old_hash: str, new_hash: str) -> bool:
        statement = (
            update(_tokens)
            .where(
                _tokens.c.user_id == user_id,
                _tokens.c.token_hash == old_hash,
            )
            .values(token_hash=new_hash, created_at=self._now())
        )
        try:
            with self._begin() as connection:
                updated = connection.execute(statement).rowcount
        except IntegrityError:
            return False
        return updated == 1

    def delete(self, user_id: int, token_hash: str) -> None:
        statement = delete(_tokens).where(
            _tokens.c.user_id == user_id,
            _tokens.c.token_hash == token_hash,
        )
        with self._begin() as connection:
            connection.execute(statement)

    def purge(self, user_id: int) -> None:
        statement = delete(_tokens).where(_tokens.c.user_id == user_id)
        with self._begin() as connection:
            connection.execute(statement)

    def clean(self, cutoff: datetime) -> None:
        statement = delete(_tokens).where(_tokens.c.created_at < cutoff)
        with self._begin() as connection:
            removed = connection.execute(statement).rowcount
        if removed:
            logger.debug("Removed %d expired autologin tokens", removed)

    def count(self, user_id: int) -> int:
        """Return how many remembered devices ``user_id`` currently has."""

        statement = select(func.count()).select_from(_tokens).where(
            _tokens.c.user_id == user_id
        )
        with self._begin() as connection:
            return int(connection.execute(statement).scalar_one())


__all__ = ["SQLTokenStore", "TokenStore", "generate_token", "hash_token"]

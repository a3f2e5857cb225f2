from __future__ import annotations

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Cheap hashes keep the suite fast; must be set before settings are imported.
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from sqlmodel import SQLModel  # noqa: E402

from secureauth import database  # noqa: E402
from secureauth.auth.core import AuthContext, AuthOptions, Authenticator  # noqa: E402
from secureauth.auth.cookies import MemoryCookieTransport  # noqa: E402
from secureauth.auth.passwords import PasswordVerifier  # noqa: E402
from secureauth.auth.service import create_user  # noqa: E402
from secureauth.auth.session import MemorySessionState  # noqa: E402
from secureauth.auth.tokens import SQLTokenStore  # noqa: E402
from secureauth.auth.users import SQLUserStore  # noqa: E402
from secureauth.config import settings  # noqa: E402


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self) -> None:
        self.now = datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture()
def db_engine(tmp_path):
    original_url = settings.AUTH_DB_URL
    database.reset_session_factory(f"sqlite:///{tmp_path / 'auth.sqlite3'}")
    SQLModel.metadata.create_all(database.engine)
    try:
        yield database.engine
    finally:
        database.reset_session_factory(original_url)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def token_store(db_engine, clock) -> SQLTokenStore:
    return SQLTokenStore(db_engine, time_provider=clock)


@pytest.fixture()
def options() -> AuthOptions:
    return AuthOptions(secret="test-secret")


@pytest.fixture()
def auth(db_engine, token_store, options, clock) -> Authenticator:
    return Authenticator(
        SQLUserStore(db_engine),
        token_store,
        options=options,
        passwords=PasswordVerifier(rounds=4),
        time_provider=clock,
    )


@pytest.fixture()
def make_user(db_engine):
    def _make(username: str = "alice", password: str = "correct-horse", **kwargs):
        with database.SessionLocal() as session:
            return create_user(session, username, password, **kwargs)

    return _make


@pytest.fixture()
def new_context():
    """Build the context of a fresh request from a browser holding ``cookies``."""

    def _new(cookies=None) -> AuthContext:
        return AuthContext(
            session=MemorySessionState(),
            cookies=MemoryCookieTransport(cookies),
        )

    return _new

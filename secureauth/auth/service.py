"""Service helpers for authentication storage."""
from __future__ import annotations

import re
from typing import Any, Dict, Optional

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, select

from ..config import settings
from .. import database
from .core import AuthOptions, Authenticator
from .models import AuditLog, User
from .passwords import PasswordVerifier, hash_password
from .tokens import SQLTokenStore
from .users import SQLUserStore


_WHITESPACE = re.compile(r"\s+")


def normalize_username(username: Optional[str]) -> str:
    """Return ``username`` trimmed, lower-cased and without inner spaces."""

    if not username:
        return ""
    return _WHITESPACE.sub("", username).lower()


def init_auth_storage() -> None:
    """Ensure tables exist and seed the initial user."""

    SQLModel.metadata.create_all(database.engine)

    with database.SessionLocal() as session:
        _seed_initial_user(session)


def _seed_initial_user(session: Session) -> None:
    """Create the configured initial user when the table is empty."""

    if session.exec(select(User.id)).first() is not None:
        return

    username = normalize_username(settings.INITIAL_USERNAME)
    password = settings.INITIAL_PASSWORD

    if not username or not password:
        return

    session.add(User(username=username, hashed_password=hash_password(password)))
    session.commit()


def build_authenticator(
    engine: Optional[Engine] = None,
    *,
    options: Optional[AuthOptions] = None,
    passwords: Optional[PasswordVerifier] = None,
) -> Authenticator:
    """Wire an :class:`Authenticator` to the SQL user and token stores."""

    bind = engine or database.engine
    return Authenticator(
        SQLUserStore(bind),
        SQLTokenStore(bind),
        options=options or AuthOptions.from_settings(),
        passwords=passwords,
    )


def create_user(
    session: Session,
    username: str,
    password: str,
    *,
    email: Optional[str] = None,
    activated: bool = True,
    profile: Optional[Dict[str, Any]] = None,
) -> User:
    """Create a new ``User`` and return it."""

    normalized_username = normalize_username(username)
    if not normalized_username:
        raise ValueError("username cannot be empty")

    user = User(
        username=normalized_username,
        email=email,
        hashed_password=hash_password(password),
        activated=activated,
        profile=profile or {},
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def set_user_activated(session: Session, username: str, activated: bool) -> Optional[User]:
    """Flip the ``activated`` flag; returns ``None`` for unknown users."""

    user = session.exec(
        select(User).where(User.username == normalize_username(username))
    ).first()
    if user is None:
        return None
    user.activated = activated
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def record_audit_event(
    session: Session,
    *,
    actor_id: Optional[int],
    action: str,
    summary: Optional[str] = None,
    data: Optional[Dict[str, Any]] = None,
    commit: bool = False,
) -> AuditLog:
    """Persist an :class:`AuditLog` entry."""

    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        summary=summary,
        data=data or {},
    )
    session.add(entry)
    session.flush()
    if commit:
        session.commit()
        session.refresh(entry)
    return entry


__all__ = [
    "build_authenticator",
    "create_user",
    "init_auth_storage",
    "normalize_username",
    "record_audit_event",
    "set_user_activated",
]

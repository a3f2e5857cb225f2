"""Lookup of user records by an arbitrary column."""
from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from .errors import StoreUnavailableError
from .models import User


UserRecord = Dict[str, Any]


class UserStore(Protocol):
    def get(self, field: str, value: Any) -> Optional[UserRecord]: ...


class SQLUserStore:
    """:class:`UserStore` reading the ``users`` table.

    Records are returned as JSON-compatible dictionaries so they can be cached
    in a cookie-backed session without further conversion.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def get(self, field: str, value: Any) -> Optional[UserRecord]:
        if field not in User.model_fields:
            raise ValueError(f"unknown user field: {field}")
        if value is None:
            return None
        column = getattr(User, field)
        try:
            with Session(self._engine) as session:
                user = session.exec(select(User).where(column == value)).first()
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("user store unavailable") from exc
        if user is None:
            return None
        return user.model_dump(mode="json")


__all__ = ["SQLUserStore", "UserRecord", "UserStore"]

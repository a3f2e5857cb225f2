"""SQLModel tables for authentication and remember-me grants."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import Column, DateTime, Index, JSON, String, UniqueConstraint
from sqlalchemy.sql import func
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def _timestamp_column(*, onupdate: bool = False) -> Column:
    return Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now() if onupdate else None,
    )


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(
        sa_column=Column(String(64), unique=True, index=True, nullable=False)
    )
    email: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), unique=True, index=True, nullable=True),
    )
    hashed_password: str = Field(
        sa_column=Column(String(255), nullable=False)
    )
    activated: bool = Field(default=True, nullable=False)
    profile: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False, default=dict),
    )
    created_at: datetime = Field(default_factory=_utcnow, sa_column=_timestamp_column())
    updated_at: datetime = Field(
        default_factory=_utcnow, sa_column=_timestamp_column(onupdate=True)
    )


class AutologinToken(SQLModel, table=True):
    """One remembered device: the hash of the token held in its cookie.

    ``created_at`` is reset whenever the hash is rotated, so it always marks
    when the token currently in the cookie was issued.
    """

    __tablename__ = "autologin_tokens"
    __table_args__ = (
        UniqueConstraint("user_id", "token_hash", name="uq_autologin_user_token"),
        Index("ix_autologin_created_at", "created_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", nullable=False, index=True)
    token_hash: str = Field(sa_column=Column(String(128), nullable=False))
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    actor_id: Optional[int] = Field(default=None, foreign_key="users.id")
    action: str = Field(sa_column=Column(String(120), nullable=False))
    summary: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
    )
    data: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False, default=dict),
    )
    created_at: datetime = Field(default_factory=_utcnow, sa_column=_timestamp_column())


__all__ = ["AuditLog", "AutologinToken", "User"]

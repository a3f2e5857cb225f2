"""FastAPI dependencies for authentication."""
from __future__ import annotations

from typing import Any, Dict

from fastapi import Depends, HTTPException, Request, status

from .core import AuthContext, Authenticator


def get_authenticator(request: Request) -> Authenticator:
    return request.app.state.authenticator


def get_auth_context(request: Request) -> AuthContext:
    """Return the context prepared by ``AutologinMiddleware``."""

    ctx = getattr(request.state, "auth_context", None)
    if ctx is None:  # pragma: no cover - middleware misconfiguration
        raise RuntimeError("AutologinMiddleware is not installed")
    return ctx


def get_current_user(
    auth: Authenticator = Depends(get_authenticator),
    ctx: AuthContext = Depends(get_auth_context),
) -> Dict[str, Any]:
    """Return the signed-in user's cached record or raise ``401``."""

    user = auth.current_user(ctx)
    if user is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Not authenticated")
    return user


__all__ = ["get_auth_context", "get_authenticator", "get_current_user"]

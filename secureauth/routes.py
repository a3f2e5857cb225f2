from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlmodel import Session

from .auth.core import AuthContext, Authenticator
from .auth.errors import AuthError
from .auth.dependencies import get_auth_context, get_authenticator, get_current_user
from .auth.service import normalize_username, record_audit_event
from .database import get_session


router = APIRouter()


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/login")
def login_submit(
    request: Request,
    username: str = Form(...),
    password: str = Form(...),
    remember: bool = Form(False),
    auth: Authenticator = Depends(get_authenticator),
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
):
    identification = username
    if auth.options.identification == "username":
        identification = normalize_username(username)

    result = auth.login(ctx, identification, password, remember=remember)
    if not result:
        error = auth.error(ctx)
        record_audit_event(
            session,
            actor_id=None,
            action="login_failed",
            summary=f"Failed login for {identification}",
            data={
                "identification": identification,
                "ip": _client_host(request),
                "error": error.value if error else None,
            },
            commit=True,
        )
        status_code = (
            status.HTTP_503_SERVICE_UNAVAILABLE
            if error is AuthError.STORE_UNAVAILABLE
            else status.HTTP_400_BAD_REQUEST
        )
        return JSONResponse(
            {"ok": False, "error": error.value if error else None},
            status_code=status_code,
        )

    user_id = auth.userid(ctx)
    record_audit_event(
        session,
        actor_id=user_id,
        action="login_success",
        summary=f"User {auth.identification(ctx)} signed in",
        data={"ip": _client_host(request), "remembered": result.remembered},
        commit=True,
    )
    return {"ok": True, "remembered": result.remembered, "user": auth.current_user(ctx)}


@router.get("/logout")
def logout(
    request: Request,
    auth: Authenticator = Depends(get_authenticator),
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
):
    actor_id: Optional[int] = auth.userid(ctx)
    auth.logout(ctx)
    record_audit_event(
        session,
        actor_id=actor_id,
        action="logout",
        summary=f"User {actor_id if actor_id is not None else 'unknown'} signed out",
        data={"ip": _client_host(request)},
        commit=True,
    )
    return RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/me")
def me(user: Dict[str, Any] = Depends(get_current_user)):
    return {"user": user}

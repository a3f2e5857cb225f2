"""Per-request autologin for Starlette applications."""
from __future__ import annotations

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ..config import settings
from .cookies import StarletteCookieTransport
from .core import AuthContext
from .session import starlette_session_state


class AutologinMiddleware(BaseHTTPMiddleware):
    """Attach an :class:`AuthContext` to each request.

    Must run inside ``SessionMiddleware``. The authenticator is read from
    ``app.state.authenticator`` on every request so that it can be swapped
    during startup and in tests.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        authenticator = request.app.state.authenticator
        cookies = StarletteCookieTransport(request, secure=settings.cookie_secure)
        ctx = AuthContext(session=starlette_session_state(request), cookies=cookies)
        request.state.auth_context = ctx

        # store calls are blocking
        await run_in_threadpool(authenticator.begin_request, ctx)

        response = await call_next(request)
        cookies.apply(response)
        return response


__all__ = ["AutologinMiddleware"]

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from .auth import build_authenticator, init_auth_storage
from .auth.middleware import AutologinMiddleware
from .config import settings
from .routes import router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    init_auth_storage()
    app.state.authenticator = build_authenticator()
    yield


def create_app() -> FastAPI:
    app = FastAPI(title="secureauth", version="1.0", lifespan=lifespan)

    # SessionMiddleware is added last so that it wraps AutologinMiddleware.
    app.add_middleware(AutologinMiddleware)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SESSION_SECRET,
        session_cookie=settings.SESSION_COOKIE_NAME,
        max_age=settings.SESSION_MAX_AGE,
        same_site="lax",
        https_only=settings.cookie_secure,
    )

    app.include_router(router)
    return app


app = create_app()

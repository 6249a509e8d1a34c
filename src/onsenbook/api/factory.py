"""FastAPI application factory with role-based route mounting."""

from typing import Literal

from fastapi import FastAPI, Request, Response

from onsenbook.infra.settings import get_settings
from onsenbook.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)

from .routers import public, worker

AppRole = Literal["public", "worker"]


def create_app(role: AppRole | None = None) -> FastAPI:
    """Create the reservation API.

    Args:
        role: "public" serves guests and admins; "worker" additionally serves
              the scheduler task routes. If None, APP_ROLE decides.

    Returns:
        Configured FastAPI application.
    """
    if role is None:
        role = get_settings().app_role  # type: ignore[assignment]

    app = FastAPI(title="onsenbook", docs_url=None, redoc_url=None)

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    app.include_router(public.router)
    if role == "worker":
        app.include_router(worker.router)

    return app

"""FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from tenantgate.backend import Backend, build_backend
from tenantgate.config.logging import setup_logging
from tenantgate.config.settings import Settings, get_settings, validate_settings
from tenantgate.exceptions import (
    NETWORK_ERROR_MESSAGE,
    AuthFailedError,
    BackendConnectionError,
    BackendError,
)
from tenantgate.web.dependencies import ResolverRegistry
from tenantgate.web.gate import GateRules, RequestGateMiddleware, login_redirect
from tenantgate.web.health import check_health, probe_connection
from tenantgate.web.middleware import RequestIDMiddleware
from tenantgate.web.routes.auth import router as auth_router
from tenantgate.web.routes.pages import router as pages_router
from tenantgate.web.routes.tenants import dashboard_router
from tenantgate.web.routes.tenants import router as tenants_router

if TYPE_CHECKING:
    from fastapi.exceptions import HTTPException

logger = structlog.get_logger(__name__)


def create_app(settings: Settings | None = None, backend: Backend | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``backend`` is built from ``settings`` unless one is passed in.
    """
    settings = validate_settings(settings) if settings is not None else get_settings()
    setup_logging(log_level=settings.log_level, json_output=not settings.debug)
    backend = backend or build_backend(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await backend.startup()
        yield
        await backend.aclose()

    app = FastAPI(
        title="tenantgate",
        description="Multi-tenant workspace front end",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.backend = backend
    app.state.resolvers = ResolverRegistry()

    # Redirect 401s to /login for browser page requests; return JSON for API
    @app.exception_handler(401)
    async def auth_redirect_handler(
        request: Request, exc: HTTPException
    ) -> RedirectResponse | JSONResponse:
        if not request.url.path.startswith("/api/"):
            return RedirectResponse(url=login_redirect(request.url.path), status_code=302)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(BackendError)
    async def backend_error_handler(request: Request, exc: BackendError) -> JSONResponse:
        message = NETWORK_ERROR_MESSAGE if isinstance(exc, BackendConnectionError) else exc.message
        logger.info(
            "backend_error",
            path=request.url.path,
            status=exc.status_code,
            error_type=type(exc).__name__,
        )
        return JSONResponse(status_code=exc.status_code, content={"detail": message})

    @app.exception_handler(AuthFailedError)
    async def auth_failed_handler(request: Request, exc: AuthFailedError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    # Middleware (last added runs first)
    app.add_middleware(
        RequestGateMiddleware,
        rules=GateRules.from_settings(settings),
        cookie_name=settings.session_cookie_name,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )
    app.add_middleware(RequestIDMiddleware)

    # Diagnostics (public)
    @app.get("/api/health")
    async def health_check() -> JSONResponse:
        body, status = await check_health(app.state.backend)
        return JSONResponse(body, status_code=status)

    @app.get("/api/test-connection")
    async def connection_check() -> JSONResponse:
        body, status = await probe_connection(app.state.backend)
        return JSONResponse(body, status_code=status)

    app.include_router(auth_router)
    app.include_router(tenants_router)
    app.include_router(dashboard_router)
    app.include_router(pages_router)

    logger.info("app_created", backend_mode=settings.backend_mode)
    return app

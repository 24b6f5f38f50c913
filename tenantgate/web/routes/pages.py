"""Server-rendered HTML page routes."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from tenantgate.auth.provider import DASHBOARD_PATH, LOGIN_PATH
from tenantgate.exceptions import BackendError, NotFoundError, user_message
from tenantgate.tenants.profiles import ensure_profile
from tenantgate.tenants.stats import load_dashboard_stats
from tenantgate.web.dependencies import (
    get_backend,
    get_optional_session,
    get_resolver,
    require_membership,
    require_session,
)

if TYPE_CHECKING:
    from tenantgate.auth.client import AuthSession
    from tenantgate.backend import Backend
    from tenantgate.tenants.resolver import TenantResolver

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["pages"])

templates = Jinja2Templates(directory=str(Path(__file__).parent.parent / "templates"))


@router.get("/")
async def index(session: AuthSession | None = Depends(get_optional_session)) -> RedirectResponse:
    return RedirectResponse(url=DASHBOARD_PATH if session else LOGIN_PATH, status_code=302)


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard_page(
    request: Request,
    session: AuthSession = Depends(require_session),
    resolver: TenantResolver = Depends(get_resolver),
    backend: Backend = Depends(get_backend),
) -> HTMLResponse:
    error = resolver.error
    profile = None
    try:
        profile = await ensure_profile(backend.profiles, session.user)
    except BackendError as exc:
        logger.warning("profile_bootstrap_failed", user_id=session.user.id, error=str(exc))
        error = user_message(exc)
    stats = await load_dashboard_stats(
        backend.tenants, resolver.user_id, [t.id for t in resolver.tenants]
    )
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "user": session.user,
            "profile": profile,
            "tenants": resolver.tenants,
            "current": resolver.current,
            "stats": stats,
            "error": error,
        },
    )


@router.get("/dashboard/settings", response_class=HTMLResponse)
async def settings_page(
    request: Request,
    resolver: TenantResolver = Depends(get_resolver),
) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "settings.html",
        {"current": resolver.current, "error": resolver.error},
    )


@router.get("/dashboard/team", response_class=HTMLResponse)
async def team_page(
    request: Request,
    resolver: TenantResolver = Depends(get_resolver),
    backend: Backend = Depends(get_backend),
) -> HTMLResponse:
    members = []
    error = resolver.error
    if resolver.current is not None:
        try:
            members = await backend.tenants.list_members(resolver.current.id)
        except BackendError as exc:
            error = user_message(exc)
    return templates.TemplateResponse(
        request,
        "team.html",
        {"current": resolver.current, "members": members, "error": error},
    )


@router.get("/client/{slug}", response_class=HTMLResponse)
async def client_page(
    request: Request,
    slug: str,
    resolver: TenantResolver = Depends(get_resolver),
    backend: Backend = Depends(get_backend),
) -> HTMLResponse:
    try:
        tenant = await backend.tenants.get_by_slug(slug)
        membership = await require_membership(backend.tenants, tenant.id, resolver.user_id)
    except NotFoundError:
        return HTMLResponse(content="Tenant not found", status_code=404)
    resolver.switch_tenant(tenant.id)
    return templates.TemplateResponse(
        request,
        "client.html",
        {"tenant": tenant, "role": membership.role},
    )

"""Authentication routes: login/signup pages, password auth, logout, OAuth callback."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from tenantgate.auth.provider import DASHBOARD_PATH, LOGIN_PATH, open_session_provider
from tenantgate.exceptions import BackendError, user_message
from tenantgate.models.api import CredentialsRequest, UserResponse
from tenantgate.web.dependencies import get_app_settings, get_backend, require_session

if TYPE_CHECKING:
    from tenantgate.auth.client import AuthSession
    from tenantgate.backend import Backend
    from tenantgate.config.settings import Settings

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["auth"])
templates = Jinja2Templates(directory=str(Path(__file__).parent.parent / "templates"))


def set_session_cookies(response: Response, session: AuthSession, settings: Settings) -> None:
    common: dict[str, Any] = {
        "httponly": True,
        "secure": not settings.debug,
        "samesite": "lax",
    }
    response.set_cookie(
        key=settings.session_cookie_name,
        value=session.access_token,
        max_age=session.expires_in or settings.session_max_age,
        **common,
    )
    if session.refresh_token:
        response.set_cookie(
            key=settings.refresh_cookie_name,
            value=session.refresh_token,
            max_age=30 * 86400,
            **common,
        )


def clear_session_cookies(response: Response, settings: Settings) -> None:
    response.delete_cookie(settings.session_cookie_name)
    response.delete_cookie(settings.refresh_cookie_name)


def _is_local_path(path: str) -> bool:
    return path.startswith("/") and not path.startswith("//")


def _user_payload(session: AuthSession) -> dict[str, str]:
    return {"id": session.user.id, "email": session.user.email, "role": session.user.role}


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


@router.get("/login", response_class=HTMLResponse)
async def login_page(
    request: Request,
    next_path: str = Query(DASHBOARD_PATH, alias="next"),
    error: str = "",
) -> HTMLResponse:
    """Render the login form. Signed-in visitors never get here (request gate)."""
    return templates.TemplateResponse(
        request, "login.html", {"next": next_path, "error": error}
    )


@router.get("/signup", response_class=HTMLResponse)
async def signup_page(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "signup.html")


@router.get("/auth/callback")
async def auth_callback(
    request: Request,
    code: str = "",
    next_path: str = Query(DASHBOARD_PATH, alias="next"),
    backend: Backend = Depends(get_backend),
    settings: Settings = Depends(get_app_settings),
) -> RedirectResponse:
    """Exchange an OAuth / email-confirmation code for a session."""
    if not code:
        return RedirectResponse(url=LOGIN_PATH, status_code=302)
    try:
        session = await backend.auth.exchange_code_for_session(code)
    except BackendError as exc:
        logger.warning("auth_callback_failed", error=str(exc))
        return RedirectResponse(
            url=f"{LOGIN_PATH}?error={quote(user_message(exc))}", status_code=302
        )
    target = next_path if _is_local_path(next_path) else DASHBOARD_PATH
    response = RedirectResponse(url=target, status_code=302)
    set_session_cookies(response, session, settings)
    logger.info("auth_callback_signed_in", user_id=session.user.id)
    return response


# ---------------------------------------------------------------------------
# JSON API
# ---------------------------------------------------------------------------


@router.post("/api/auth/login")
async def login(
    body: CredentialsRequest,
    request: Request,
    response: Response,
    backend: Backend = Depends(get_backend),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    """Sign in with email and password and set the session cookies."""
    token = request.cookies.get(settings.session_cookie_name)
    async with open_session_provider(backend.auth, token) as provider:
        session = await provider.sign_in(body.email, body.password)
        redirect_to = provider.redirect_to or DASHBOARD_PATH

    set_session_cookies(response, session, settings)
    logger.info("user_logged_in", user_id=session.user.id)
    return {"status": "ok", "redirect_to": redirect_to, "user": _user_payload(session)}


@router.post("/api/auth/signup")
async def signup(
    body: CredentialsRequest,
    request: Request,
    response: Response,
    backend: Backend = Depends(get_backend),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    callback_url = str(request.url_for("auth_callback"))
    async with open_session_provider(backend.auth) as provider:
        result = await provider.sign_up(body.email, body.password, redirect_to=callback_url)
        redirect_to = provider.redirect_to

    if not result.success:
        raise HTTPException(status_code=400, detail=result.message)
    if result.session is not None:
        set_session_cookies(response, result.session, settings)
    return {"success": True, "message": result.message, "redirect_to": redirect_to}


@router.post("/api/auth/logout")
async def logout(
    request: Request,
    response: Response,
    backend: Backend = Depends(get_backend),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, str]:
    """Sign out and drop this session's tenant selection."""
    token = request.cookies.get(settings.session_cookie_name)
    async with open_session_provider(backend.auth, token) as provider:
        await provider.sign_out()
        redirect_to = provider.redirect_to or LOGIN_PATH

    request.app.state.resolvers.discard(token)
    clear_session_cookies(response, settings)
    return {"status": "logged_out", "redirect_to": redirect_to}


@router.post("/api/auth/refresh")
async def refresh(
    request: Request,
    response: Response,
    backend: Backend = Depends(get_backend),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    refresh_token = request.cookies.get(settings.refresh_cookie_name)
    if not refresh_token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    session = await backend.auth.refresh_session(refresh_token)
    request.app.state.resolvers.discard(request.cookies.get(settings.session_cookie_name))
    set_session_cookies(response, session, settings)
    return {"status": "ok", "user": _user_payload(session)}


@router.get("/api/auth/me", response_model=UserResponse)
async def me(session: AuthSession = Depends(require_session)) -> dict[str, str]:
    return _user_payload(session)

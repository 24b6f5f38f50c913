"""Request gate: session-based redirects applied to every incoming request."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING
from urllib.parse import quote

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, RedirectResponse

from tenantgate.auth.provider import DASHBOARD_PATH, LOGIN_PATH
from tenantgate.exceptions import BackendError

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response

    from tenantgate.auth.client import AuthSession
    from tenantgate.config.settings import Settings

logger = structlog.get_logger(__name__)


class GateAction(str, Enum):
    ALLOW = "allow"
    REDIRECT = "redirect"


@dataclass(frozen=True, slots=True)
class GateDecision:
    action: GateAction
    location: str | None = None

    @property
    def allowed(self) -> bool:
        return self.action is GateAction.ALLOW


ALLOW = GateDecision(GateAction.ALLOW)


@dataclass(frozen=True, slots=True)
class GateRules:
    public_only_paths: tuple[str, ...] = ("/login", "/signup", "/auth/callback")
    protected_prefixes: tuple[str, ...] = ("/dashboard", "/client", "/api/tenants", "/admin")
    admin_prefix: str = "/admin"
    admin_role: str = "admin"

    @classmethod
    def from_settings(cls, settings: Settings) -> GateRules:
        return cls(
            public_only_paths=tuple(settings.public_only_paths),
            protected_prefixes=tuple(settings.protected_prefixes),
            admin_prefix=settings.admin_prefix,
        )


def _under(path: str, prefix: str) -> bool:
    prefix = prefix.rstrip("/")
    return path == prefix or path.startswith(prefix + "/")


def login_redirect(path: str) -> str:
    return f"{LOGIN_PATH}?next={quote(path, safe='/')}"


def decide(path: str, session: AuthSession | None, rules: GateRules) -> GateDecision:
    """Allow the request, or say where to send it instead."""
    if session is not None and path in rules.public_only_paths:
        return GateDecision(GateAction.REDIRECT, DASHBOARD_PATH)

    if session is None:
        if any(_under(path, prefix) for prefix in rules.protected_prefixes):
            return GateDecision(GateAction.REDIRECT, login_redirect(path))
        return ALLOW

    if _under(path, rules.admin_prefix) and session.user.role != rules.admin_role:
        return GateDecision(GateAction.REDIRECT, DASHBOARD_PATH)

    return ALLOW


class RequestGateMiddleware(BaseHTTPMiddleware):
    """Reads the session cookie, stores the session on ``request.state`` and applies ``decide``.

    API paths get a JSON 401/403 instead of a redirect.
    """

    def __init__(self, app: object, rules: GateRules, cookie_name: str = "session") -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._rules = rules
        self._cookie_name = cookie_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        session = await self._read_session(request)
        request.state.session = session

        path = request.url.path
        decision = decide(path, session, self._rules)
        if decision.allowed:
            return await call_next(request)

        logger.info(
            "request_gated",
            path=path,
            location=decision.location,
            authenticated=session is not None,
        )
        if path.startswith("/api/"):
            if session is None:
                return JSONResponse({"detail": "Not authenticated"}, status_code=401)
            return JSONResponse({"detail": "Admin access required"}, status_code=403)
        return RedirectResponse(url=decision.location or LOGIN_PATH, status_code=302)

    async def _read_session(self, request: Request) -> AuthSession | None:
        token = request.cookies.get(self._cookie_name)
        if not token:
            return None
        try:
            return await request.app.state.backend.auth.get_session(token)
        except BackendError as exc:
            # Unreachable auth service counts as signed out; no retry.
            logger.warning("session_read_failed", path=request.url.path, error=str(exc))
            return None

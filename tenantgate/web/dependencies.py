"""FastAPI dependency injection: backend handle, session, per-session tenant state."""

from __future__ import annotations

from collections import OrderedDict
from typing import TYPE_CHECKING

import structlog
from fastapi import Depends, HTTPException, Request

from tenantgate.exceptions import PermissionDeniedError
from tenantgate.tenants.resolver import TenantResolver
from tenantgate.tenants.service import TenantService

if TYPE_CHECKING:
    from tenantgate.auth.client import AuthSession
    from tenantgate.backend import Backend, TenantRepository
    from tenantgate.config.settings import Settings
    from tenantgate.models.database import TenantUser

logger = structlog.get_logger(__name__)

TENANT_MANAGER_ROLES = frozenset({"owner", "admin"})


class ResolverRegistry:
    """Current-tenant state per browser session, kept only in process memory.

    Keyed by access token; the oldest entries are dropped past ``max_entries``.
    """

    def __init__(self, max_entries: int = 1024) -> None:
        self._max_entries = max_entries
        self._resolvers: OrderedDict[str, TenantResolver] = OrderedDict()

    def get_or_create(self, token: str, user_id: str, repo: TenantRepository) -> TenantResolver:
        resolver = self._resolvers.get(token)
        if resolver is None or resolver.user_id != user_id:
            resolver = TenantResolver(repo, user_id)
            self._resolvers[token] = resolver
        self._resolvers.move_to_end(token)
        while len(self._resolvers) > self._max_entries:
            self._resolvers.popitem(last=False)
        return resolver

    def discard(self, token: str | None) -> None:
        if token:
            self._resolvers.pop(token, None)

    def __len__(self) -> int:
        return len(self._resolvers)


def get_backend(request: Request) -> Backend:
    return request.app.state.backend


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_optional_session(request: Request) -> AuthSession | None:
    return getattr(request.state, "session", None)


def require_session(
    session: AuthSession | None = Depends(get_optional_session),
) -> AuthSession:
    """Require an authenticated session (populated by the request gate)."""
    if session is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return session


async def get_resolver(
    request: Request,
    session: AuthSession = Depends(require_session),
    backend: Backend = Depends(get_backend),
) -> TenantResolver:
    """The session's tenant snapshot, re-fetched for this request."""
    registry: ResolverRegistry = request.app.state.resolvers
    resolver = registry.get_or_create(session.access_token, session.user.id, backend.tenants)
    await resolver.load()
    return resolver


def get_tenant_service(
    resolver: TenantResolver = Depends(get_resolver),
    backend: Backend = Depends(get_backend),
    settings: Settings = Depends(get_app_settings),
) -> TenantService:
    return TenantService(backend.tenants, resolver, creator_role=settings.creator_role)


async def require_membership(
    repo: TenantRepository,
    tenant_id: str,
    user_id: str,
    roles: frozenset[str] | None = None,
) -> TenantUser:
    """Row-level policy: callers outside the tenant (or below ``roles``) see "not found"."""
    membership = await repo.get_membership(tenant_id, user_id)
    if membership is None or (roles is not None and membership.role not in roles):
        logger.info("tenant_access_denied", tenant_id=tenant_id, user_id=user_id)
        raise PermissionDeniedError("Tenant not found")
    return membership

"""Tenant and tenant-member API routes."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from tenantgate.models.api import (
    DashboardStats,
    MemberCreate,
    MemberResponse,
    MemberUpdate,
    SwitchTenantRequest,
    TenantCreate,
    TenantListResponse,
    TenantResponse,
    TenantUpdate,
)
from tenantgate.tenants.stats import load_dashboard_stats
from tenantgate.web.dependencies import (
    TENANT_MANAGER_ROLES,
    get_backend,
    get_resolver,
    get_tenant_service,
    require_membership,
)

if TYPE_CHECKING:
    from tenantgate.backend import Backend
    from tenantgate.models.database import Tenant, TenantUser
    from tenantgate.tenants.resolver import TenantResolver
    from tenantgate.tenants.service import TenantService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/tenants", tags=["tenants"])
dashboard_router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


def _listing(resolver: TenantResolver) -> TenantListResponse:
    return TenantListResponse(
        tenants=[TenantResponse.model_validate(t, from_attributes=True) for t in resolver.tenants],
        current_tenant_id=resolver.current.id if resolver.current else None,
        error=resolver.error,
    )


@router.get("", response_model=TenantListResponse)
async def list_tenants(resolver: TenantResolver = Depends(get_resolver)) -> TenantListResponse:
    return _listing(resolver)


@router.post("", status_code=201, response_model=TenantResponse)
async def create_tenant(
    body: TenantCreate,
    service: TenantService = Depends(get_tenant_service),
) -> Tenant:
    return await service.create(body.name, settings=body.settings)


@router.post("/switch", response_model=TenantListResponse)
async def switch_tenant(
    body: SwitchTenantRequest,
    resolver: TenantResolver = Depends(get_resolver),
) -> TenantListResponse:
    """Change the session's current tenant. Nothing is written to the backend."""
    if not resolver.switch_tenant(body.tenant_id):
        raise HTTPException(status_code=404, detail="Tenant not found")
    return _listing(resolver)


@router.get("/{tenant_id}", response_model=TenantResponse)
async def get_tenant(
    tenant_id: str,
    resolver: TenantResolver = Depends(get_resolver),
    backend: Backend = Depends(get_backend),
) -> Tenant:
    await require_membership(backend.tenants, tenant_id, resolver.user_id)
    return await backend.tenants.get(tenant_id)


@router.patch("/{tenant_id}", response_model=TenantResponse)
async def update_tenant(
    tenant_id: str,
    body: TenantUpdate,
    service: TenantService = Depends(get_tenant_service),
    resolver: TenantResolver = Depends(get_resolver),
    backend: Backend = Depends(get_backend),
) -> Tenant:
    await require_membership(backend.tenants, tenant_id, resolver.user_id, TENANT_MANAGER_ROLES)
    return await service.update(tenant_id, **body.model_dump(exclude_unset=True))


@router.delete("/{tenant_id}")
async def delete_tenant(
    tenant_id: str,
    service: TenantService = Depends(get_tenant_service),
    resolver: TenantResolver = Depends(get_resolver),
    backend: Backend = Depends(get_backend),
) -> Response:
    await require_membership(backend.tenants, tenant_id, resolver.user_id, TENANT_MANAGER_ROLES)
    await service.delete(tenant_id)
    return Response(status_code=204)


@router.get("/{tenant_id}/members", response_model=list[MemberResponse])
async def list_members(
    tenant_id: str,
    service: TenantService = Depends(get_tenant_service),
    resolver: TenantResolver = Depends(get_resolver),
    backend: Backend = Depends(get_backend),
) -> list[TenantUser]:
    await require_membership(backend.tenants, tenant_id, resolver.user_id)
    return await service.list_members(tenant_id)


@router.post("/{tenant_id}/members", status_code=201, response_model=MemberResponse)
async def add_member(
    tenant_id: str,
    body: MemberCreate,
    service: TenantService = Depends(get_tenant_service),
    resolver: TenantResolver = Depends(get_resolver),
    backend: Backend = Depends(get_backend),
) -> TenantUser:
    await require_membership(backend.tenants, tenant_id, resolver.user_id, TENANT_MANAGER_ROLES)
    return await service.add_member(tenant_id, body.user_id, body.role)


@router.patch("/{tenant_id}/members/{user_id}", response_model=MemberResponse)
async def update_member(
    tenant_id: str,
    user_id: str,
    body: MemberUpdate,
    service: TenantService = Depends(get_tenant_service),
    resolver: TenantResolver = Depends(get_resolver),
    backend: Backend = Depends(get_backend),
) -> TenantUser:
    await require_membership(backend.tenants, tenant_id, resolver.user_id, TENANT_MANAGER_ROLES)
    return await service.update_member_role(tenant_id, user_id, body.role)


@dashboard_router.get("/stats", response_model=DashboardStats)
async def dashboard_stats(
    resolver: TenantResolver = Depends(get_resolver),
    backend: Backend = Depends(get_backend),
) -> DashboardStats:
    return await load_dashboard_stats(
        backend.tenants, resolver.user_id, [t.id for t in resolver.tenants]
    )

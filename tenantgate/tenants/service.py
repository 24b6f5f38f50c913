"""Tenant mutations: create/update tenants and their user associations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from tenantgate.exceptions import ValidationError
from tenantgate.utils.slug import normalize_name, slugify

if TYPE_CHECKING:
    from tenantgate.backend import TenantRepository
    from tenantgate.models.database import Tenant, TenantUser
    from tenantgate.tenants.resolver import TenantResolver

logger = structlog.get_logger(__name__)


class TenantService:
    """Writes go to the repository first; the resolver snapshot follows on success."""

    def __init__(
        self,
        repo: TenantRepository,
        resolver: TenantResolver,
        creator_role: str = "owner",
    ) -> None:
        self._repo = repo
        self._resolver = resolver
        self._creator_role = creator_role

    async def create(self, name: str, settings: dict[str, Any] | None = None) -> Tenant:
        name = normalize_name(name)
        slug = slugify(name)
        if not name or not slug:
            raise ValidationError("Tenant name must contain letters or digits")

        tenant = await self._repo.create_with_owner(
            name=name,
            slug=slug,
            owner_id=self._resolver.user_id,
            role=self._creator_role,
            settings=settings,
        )
        self._resolver.remember(tenant)
        return tenant

    async def update(self, tenant_id: str, **fields: Any) -> Tenant:
        if "name" in fields and fields["name"] is not None:
            fields["name"] = normalize_name(fields["name"])
        updates = {key: value for key, value in fields.items() if value is not None}
        if not updates:
            return await self._repo.get(tenant_id)
        tenant = await self._repo.update(tenant_id, **updates)
        self._resolver.remember(tenant)
        return tenant

    async def delete(self, tenant_id: str) -> int:
        removed = await self._repo.delete(tenant_id)
        self._resolver.forget(tenant_id)
        return removed

    async def add_member(self, tenant_id: str, user_id: str, role: str = "member") -> TenantUser:
        return await self._repo.add_member(tenant_id, user_id, role)

    async def update_member_role(self, tenant_id: str, user_id: str, role: str) -> TenantUser:
        return await self._repo.update_member_role(tenant_id, user_id, role)

    async def list_members(self, tenant_id: str) -> list[TenantUser]:
        return await self._repo.list_members(tenant_id)

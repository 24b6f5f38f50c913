"""In-memory tenant repository (PostgreSQL-backed version in production)."""

from __future__ import annotations

from typing import Any

import structlog

from tenantgate.config.settings import TENANT_ROLES
from tenantgate.exceptions import (
    DuplicateMembershipError,
    DuplicateSlugError,
    InvalidRoleError,
    NotFoundError,
    ValidationError,
)
from tenantgate.models.database import Tenant, TenantUser, _utc_now

logger = structlog.get_logger(__name__)

UPDATABLE_TENANT_FIELDS = frozenset({"name", "settings", "subscription_tier"})


def check_role(role: str) -> None:
    if role not in TENANT_ROLES:
        raise InvalidRoleError("Invalid role")


def check_tenant_fields(name: str, slug: str, created_by: str) -> None:
    if not name or not slug or not created_by:
        raise ValidationError("Missing required fields")


def check_updates(updates: dict[str, Any]) -> None:
    unknown = set(updates) - UPDATABLE_TENANT_FIELDS
    if unknown:
        raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
    if "name" in updates and not updates["name"]:
        raise ValidationError("Missing required fields")


class InMemoryTenantRepository:
    """In-memory tenant store. Replaced by SQLModel + PostgreSQL in production."""

    def __init__(self) -> None:
        self._tenants: dict[str, Tenant] = {}
        self._members: dict[str, TenantUser] = {}

    async def create_with_owner(
        self,
        name: str,
        slug: str,
        owner_id: str,
        role: str = "owner",
        settings: dict[str, Any] | None = None,
    ) -> Tenant:
        """Insert a tenant and its creator's association, or neither."""
        check_tenant_fields(name, slug, owner_id)
        check_role(role)
        if any(t.slug == slug for t in self._tenants.values()):
            raise DuplicateSlugError("Slug already exists")

        tenant = Tenant(name=name, slug=slug, created_by=owner_id)
        if settings is not None:
            tenant.settings = settings
        membership = TenantUser(tenant_id=tenant.id, user_id=owner_id, role=role)
        self._tenants[tenant.id] = tenant
        self._members[membership.id] = membership
        logger.info("tenant_created", tenant_id=tenant.id, slug=slug, owner_id=owner_id)
        return tenant

    async def get(self, tenant_id: str) -> Tenant:
        tenant = self._tenants.get(tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant not found")
        return tenant

    async def get_by_slug(self, slug: str) -> Tenant:
        for tenant in self._tenants.values():
            if tenant.slug == slug:
                return tenant
        raise NotFoundError("Tenant not found")

    async def list_tenant_ids_for_user(self, user_id: str) -> list[str]:
        return [m.tenant_id for m in self._members.values() if m.user_id == user_id]

    async def list_by_ids(self, tenant_ids: list[str]) -> list[Tenant]:
        wanted = set(tenant_ids)
        tenants = [t for t in self._tenants.values() if t.id in wanted]
        return sorted(tenants, key=lambda t: t.created_at)

    async def update(self, tenant_id: str, **updates: Any) -> Tenant:
        check_updates(updates)
        tenant = await self.get(tenant_id)
        for key, value in updates.items():
            setattr(tenant, key, value)
        tenant.updated_at = _utc_now()
        logger.info("tenant_updated", tenant_id=tenant_id, fields=sorted(updates))
        return tenant

    async def delete(self, tenant_id: str) -> int:
        """Delete a tenant and its associations. Returns the association count removed."""
        await self.get(tenant_id)
        doomed = [mid for mid, m in self._members.items() if m.tenant_id == tenant_id]
        for member_id in doomed:
            del self._members[member_id]
        del self._tenants[tenant_id]
        logger.info("tenant_deleted", tenant_id=tenant_id, memberships_removed=len(doomed))
        return len(doomed)

    async def add_member(self, tenant_id: str, user_id: str, role: str = "member") -> TenantUser:
        check_role(role)
        await self.get(tenant_id)
        if await self.get_membership(tenant_id, user_id) is not None:
            raise DuplicateMembershipError("Association already exists")
        membership = TenantUser(tenant_id=tenant_id, user_id=user_id, role=role)
        self._members[membership.id] = membership
        logger.info("tenant_member_added", tenant_id=tenant_id, user_id=user_id, role=role)
        return membership

    async def update_member_role(self, tenant_id: str, user_id: str, role: str) -> TenantUser:
        check_role(role)
        membership = await self.get_membership(tenant_id, user_id)
        if membership is None:
            raise NotFoundError("Association not found")
        membership.role = role
        logger.info("tenant_member_role_updated", tenant_id=tenant_id, user_id=user_id, role=role)
        return membership

    async def get_membership(self, tenant_id: str, user_id: str) -> TenantUser | None:
        for membership in self._members.values():
            if membership.tenant_id == tenant_id and membership.user_id == user_id:
                return membership
        return None

    async def list_members(self, tenant_id: str) -> list[TenantUser]:
        members = [m for m in self._members.values() if m.tenant_id == tenant_id]
        return sorted(members, key=lambda m: m.created_at)

    async def count_tenants(self, user_id: str) -> int:
        return len(await self.list_tenant_ids_for_user(user_id))

    async def count_members(self, tenant_ids: list[str]) -> int:
        wanted = set(tenant_ids)
        return sum(1 for m in self._members.values() if m.tenant_id in wanted)

    async def ping(self) -> None:
        return None

"""PostgreSQL-backed tenant repository."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from tenantgate.exceptions import (
    DuplicateMembershipError,
    DuplicateSlugError,
    NotFoundError,
)
from tenantgate.models.database import Tenant, TenantUser, _utc_now
from tenantgate.storage.database import open_session
from tenantgate.storage.repositories.tenants import (
    check_role,
    check_tenant_fields,
    check_updates,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)


class DatabaseTenantRepository:
    """Tenants and tenant-user associations stored via SQLModel."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def create_with_owner(
        self,
        name: str,
        slug: str,
        owner_id: str,
        role: str = "owner",
        settings: dict[str, Any] | None = None,
    ) -> Tenant:
        """Insert a tenant and its creator's association in one transaction."""
        check_tenant_fields(name, slug, owner_id)
        check_role(role)

        async with open_session(self._engine) as session:
            existing = await session.execute(select(Tenant).where(col(Tenant.slug) == slug))
            if existing.scalars().first() is not None:
                raise DuplicateSlugError("Slug already exists")

            tenant = Tenant(name=name, slug=slug, created_by=owner_id)
            if settings is not None:
                tenant.settings = settings
            session.add(tenant)
            try:
                await session.flush()
                session.add(TenantUser(tenant_id=tenant.id, user_id=owner_id, role=role))
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                logger.info("tenant_create_conflict", slug=slug)
                raise DuplicateSlugError("Slug already exists") from exc
            await session.refresh(tenant)

            logger.info("tenant_created", tenant_id=tenant.id, slug=slug, owner_id=owner_id)
            return tenant

    async def get(self, tenant_id: str) -> Tenant:
        async with open_session(self._engine) as session:
            tenant = await session.get(Tenant, tenant_id)
            if tenant is None:
                raise NotFoundError("Tenant not found")
            return tenant

    async def get_by_slug(self, slug: str) -> Tenant:
        async with open_session(self._engine) as session:
            result = await session.execute(select(Tenant).where(col(Tenant.slug) == slug))
            tenant = result.scalars().first()
            if tenant is None:
                raise NotFoundError("Tenant not found")
            return tenant

    async def list_tenant_ids_for_user(self, user_id: str) -> list[str]:
        async with open_session(self._engine) as session:
            stmt = select(TenantUser.tenant_id).where(col(TenantUser.user_id) == user_id)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_by_ids(self, tenant_ids: list[str]) -> list[Tenant]:
        if not tenant_ids:
            return []
        async with open_session(self._engine) as session:
            stmt = (
                select(Tenant)
                .where(col(Tenant.id).in_(tenant_ids))
                .order_by(col(Tenant.created_at))
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def update(self, tenant_id: str, **updates: Any) -> Tenant:
        check_updates(updates)
        async with open_session(self._engine) as session:
            tenant = await session.get(Tenant, tenant_id)
            if tenant is None:
                raise NotFoundError("Tenant not found")
            for key, value in updates.items():
                setattr(tenant, key, value)
            tenant.updated_at = _utc_now()
            session.add(tenant)
            await session.commit()
            await session.refresh(tenant)
            logger.info("tenant_updated", tenant_id=tenant_id, fields=sorted(updates))
            return tenant

    async def delete(self, tenant_id: str) -> int:
        """Delete a tenant and its associations. Returns the association count removed."""
        async with open_session(self._engine) as session:
            tenant = await session.get(Tenant, tenant_id)
            if tenant is None:
                raise NotFoundError("Tenant not found")
            result = await session.execute(
                delete(TenantUser).where(col(TenantUser.tenant_id) == tenant_id)
            )
            await session.delete(tenant)
            await session.commit()
            removed = result.rowcount or 0
            logger.info("tenant_deleted", tenant_id=tenant_id, memberships_removed=removed)
            return removed

    async def add_member(self, tenant_id: str, user_id: str, role: str = "member") -> TenantUser:
        check_role(role)
        async with open_session(self._engine) as session:
            if await session.get(Tenant, tenant_id) is None:
                raise NotFoundError("Tenant not found")
            membership = TenantUser(tenant_id=tenant_id, user_id=user_id, role=role)
            session.add(membership)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateMembershipError("Association already exists") from exc
            await session.refresh(membership)
            logger.info("tenant_member_added", tenant_id=tenant_id, user_id=user_id, role=role)
            return membership

    async def update_member_role(self, tenant_id: str, user_id: str, role: str) -> TenantUser:
        check_role(role)
        async with open_session(self._engine) as session:
            membership = await self._find_membership(session, tenant_id, user_id)
            if membership is None:
                raise NotFoundError("Association not found")
            membership.role = role
            session.add(membership)
            await session.commit()
            await session.refresh(membership)
            logger.info(
                "tenant_member_role_updated", tenant_id=tenant_id, user_id=user_id, role=role
            )
            return membership

    async def get_membership(self, tenant_id: str, user_id: str) -> TenantUser | None:
        async with open_session(self._engine) as session:
            return await self._find_membership(session, tenant_id, user_id)

    async def list_members(self, tenant_id: str) -> list[TenantUser]:
        async with open_session(self._engine) as session:
            stmt = (
                select(TenantUser)
                .where(col(TenantUser.tenant_id) == tenant_id)
                .order_by(col(TenantUser.created_at))
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def count_tenants(self, user_id: str) -> int:
        async with open_session(self._engine) as session:
            stmt = (
                select(func.count())
                .select_from(TenantUser)
                .where(col(TenantUser.user_id) == user_id)
            )
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def count_members(self, tenant_ids: list[str]) -> int:
        if not tenant_ids:
            return 0
        async with open_session(self._engine) as session:
            stmt = (
                select(func.count())
                .select_from(TenantUser)
                .where(col(TenantUser.tenant_id).in_(tenant_ids))
            )
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def ping(self) -> None:
        """Round-trip one query against the tenant table."""
        async with open_session(self._engine) as session:
            await session.execute(select(func.count()).select_from(Tenant))

    @staticmethod
    async def _find_membership(
        session: AsyncSession, tenant_id: str, user_id: str
    ) -> TenantUser | None:
        stmt = select(TenantUser).where(
            col(TenantUser.tenant_id) == tenant_id,
            col(TenantUser.user_id) == user_id,
        )
        result = await session.execute(stmt)
        return result.scalars().first()

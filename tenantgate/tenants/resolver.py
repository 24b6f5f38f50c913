"""Tenant resolver: which tenants a user belongs to, and which one is current."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from tenantgate.exceptions import BackendError

if TYPE_CHECKING:
    from tenantgate.backend import TenantRepository
    from tenantgate.models.database import Tenant

logger = structlog.get_logger(__name__)

LOAD_ERROR_MESSAGE = "Error loading tenants"


class TenantResolver:
    """In-memory snapshot of a user's tenants plus the current selection.

    ``load()`` issues two sequential reads (association ids, then tenant
    rows). A failed read records ``error`` and keeps the previous snapshot.
    The selection is never written back to the backend.
    """

    def __init__(self, repo: TenantRepository, user_id: str) -> None:
        self._repo = repo
        self.user_id = user_id
        self.tenants: list[Tenant] = []
        self.current: Tenant | None = None
        self.loading = True
        self.error: str | None = None

    async def load(self) -> list[Tenant]:
        self.error = None
        try:
            tenant_ids = await self._repo.list_tenant_ids_for_user(self.user_id)
            if not tenant_ids:
                self.tenants = []
                self.current = None
                return self.tenants

            tenants = await self._repo.list_by_ids(tenant_ids)
            self.tenants = tenants
            self._reselect()
        except BackendError as exc:
            self.error = exc.message or LOAD_ERROR_MESSAGE
            logger.warning("tenant_load_failed", user_id=self.user_id, error=self.error)
        finally:
            self.loading = False
        return self.tenants

    def switch_tenant(self, tenant_id: str) -> bool:
        """Change the current selection locally. Unknown ids are ignored."""
        for tenant in self.tenants:
            if tenant.id == tenant_id:
                self.current = tenant
                logger.debug("tenant_switched", user_id=self.user_id, tenant_id=tenant_id)
                return True
        return False

    def find(self, tenant_id: str) -> Tenant | None:
        return next((t for t in self.tenants if t.id == tenant_id), None)

    def remember(self, tenant: Tenant) -> None:
        """Insert or replace ``tenant`` in the snapshot after a successful write."""
        for index, existing in enumerate(self.tenants):
            if existing.id == tenant.id:
                self.tenants[index] = tenant
                break
        else:
            self.tenants.append(tenant)
        if self.current is None or self.current.id == tenant.id:
            self.current = tenant

    def forget(self, tenant_id: str) -> None:
        self.tenants = [t for t in self.tenants if t.id != tenant_id]
        if self.current is not None and self.current.id == tenant_id:
            self.current = None
            self._reselect()

    def _reselect(self) -> None:
        # Keep the selection if it survived the reload, refreshed to the new row.
        if self.current is not None:
            self.current = self.find(self.current.id)
        if self.current is None and self.tenants:
            self.current = self.tenants[0]

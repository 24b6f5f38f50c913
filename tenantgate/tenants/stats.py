"""Dashboard figures gathered with concurrent count queries."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from tenantgate.exceptions import BackendError
from tenantgate.models.api import DashboardStats

if TYPE_CHECKING:
    from tenantgate.backend import TenantRepository

logger = structlog.get_logger(__name__)


async def load_dashboard_stats(
    repo: TenantRepository, user_id: str, tenant_ids: list[str]
) -> DashboardStats:
    """Run the count queries together. If any of them fails every figure is zero."""
    tenants, members = await asyncio.gather(
        repo.count_tenants(user_id),
        repo.count_members(tenant_ids),
        return_exceptions=True,
    )
    for result in (tenants, members):
        if isinstance(result, BaseException):
            if not isinstance(result, BackendError):
                raise result
            logger.warning("dashboard_stats_failed", user_id=user_id, error=str(result))
            return DashboardStats()
    return DashboardStats(tenants=tenants, members=members)

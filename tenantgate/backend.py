"""The backend handle: auth client plus data repositories, built once per app."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from tenantgate.storage.repositories.db_tenants import DatabaseTenantRepository
from tenantgate.storage.repositories.profiles import InMemoryProfileRepository, ProfileRepository
from tenantgate.storage.repositories.tenants import InMemoryTenantRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from tenantgate.auth.client import AuthClient
    from tenantgate.config.settings import Settings

logger = structlog.get_logger(__name__)

TenantRepository = InMemoryTenantRepository | DatabaseTenantRepository
ProfileStore = InMemoryProfileRepository | ProfileRepository


@dataclass
class Backend:
    """Everything that talks to the hosted platform, passed down explicitly."""

    auth: AuthClient
    tenants: TenantRepository
    profiles: ProfileStore
    engine: AsyncEngine | None = None

    async def startup(self) -> None:
        if self.engine is not None:
            from tenantgate.storage.database import init_db

            await init_db(self.engine)
            logger.info("backend_tables_ready")

    async def aclose(self) -> None:
        await self.auth.aclose()
        if self.engine is not None:
            await self.engine.dispose()


def _create_auth_client(settings: Settings) -> AuthClient:
    if settings.backend_mode == "hosted":
        from tenantgate.auth.hosted import HostedAuthClient

        return HostedAuthClient(settings.backend_url or "", settings.backend_anon_key or "")

    from tenantgate.auth.memory import InMemoryAuthClient

    return InMemoryAuthClient(
        secret_key=settings.secret_key,
        session_max_age=settings.session_max_age,
        min_password_length=settings.min_password_length,
    )


def build_backend(settings: Settings) -> Backend:
    """Create the backend handle described by ``settings``."""
    auth = _create_auth_client(settings)
    if settings.use_database:
        from tenantgate.storage.database import create_engine

        engine = create_engine(settings)
        backend = Backend(
            auth=auth,
            tenants=DatabaseTenantRepository(engine),
            profiles=ProfileRepository(engine),
            engine=engine,
        )
    else:
        backend = Backend(
            auth=auth,
            tenants=InMemoryTenantRepository(),
            profiles=InMemoryProfileRepository(),
        )
    logger.info(
        "backend_built",
        backend_mode=settings.backend_mode,
        use_database=settings.use_database,
    )
    return backend

"""Async database engine factory and session helper."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from tenantgate.config.settings import Settings
from tenantgate.exceptions import BackendError

logger = structlog.get_logger(__name__)

DATABASE_ERROR_MESSAGE = "Database request failed"


def create_engine(settings: Settings) -> AsyncEngine:
    """Build the async engine for the tenant tables."""
    if settings.database_url.startswith("sqlite"):
        return create_async_engine(settings.database_url, echo=settings.debug)
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables (for dev/testing; production schemas are managed by the backend)."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


@asynccontextmanager
async def open_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Open a session; driver and connection failures surface as ``BackendError``.

    ``IntegrityError`` passes through so callers can map it to a conflict.
    """
    try:
        async with AsyncSession(engine) as session:
            yield session
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        logger.warning("database_query_failed", error_type=type(exc).__name__, error=str(exc))
        raise BackendError(DATABASE_ERROR_MESSAGE, 503) from exc

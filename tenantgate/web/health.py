"""Health check and connection diagnostics."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from tenantgate.exceptions import user_message

if TYPE_CHECKING:
    from tenantgate.backend import Backend

logger = structlog.get_logger(__name__)


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


async def check_health(backend: Backend) -> tuple[dict[str, object], int]:
    """Round-trip one query against the tenant table."""
    try:
        await backend.tenants.ping()
    except Exception as exc:
        logger.warning("health_check_failed", error=str(exc))
        return (
            {"status": "unhealthy", "error": str(exc) or "Unknown error", "timestamp": _timestamp()},
            500,
        )
    return {"status": "healthy", "database": "connected", "timestamp": _timestamp()}, 200


async def probe_connection(backend: Backend) -> tuple[dict[str, object], int]:
    """Probe the database and the auth service in turn."""
    try:
        await backend.tenants.ping()
        await backend.auth.ping()
    except Exception as exc:
        logger.warning("connection_test_failed", error=str(exc))
        return {"success": False, "error": user_message(exc), "timestamp": _timestamp()}, 500
    return {
        "success": True,
        "database": "connected",
        "auth": "connected",
        "timestamp": _timestamp(),
    }, 200

"""First-login profile bootstrap."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from tenantgate.exceptions import NotFoundError, PermissionDeniedError
from tenantgate.models.database import Profile

if TYPE_CHECKING:
    from tenantgate.auth.client import AuthUser
    from tenantgate.backend import ProfileStore

logger = structlog.get_logger(__name__)


async def ensure_profile(profiles: ProfileStore, user: AuthUser) -> Profile:
    """Return the user's profile, creating it only when the lookup says "not found"."""
    try:
        return await profiles.get(user.id)
    except PermissionDeniedError:
        raise
    except NotFoundError:
        logger.info("profile_missing_creating", user_id=user.id)

    return await profiles.create(
        Profile(
            id=user.id,
            email=user.email,
            full_name=str(user.user_metadata.get("full_name", "")),
            avatar_url=str(user.user_metadata.get("avatar_url", "")),
        )
    )

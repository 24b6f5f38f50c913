"""User profile repository, DB-backed with an in-memory fallback."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy.exc import IntegrityError

from tenantgate.exceptions import ConflictError, NotFoundError
from tenantgate.models.database import Profile
from tenantgate.storage.database import open_session

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)


class ProfileRepository:
    """Stores profiles in PostgreSQL via the Profile model."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def get(self, user_id: str) -> Profile:
        async with open_session(self._engine) as session:
            profile = await session.get(Profile, user_id)
            if profile is None:
                raise NotFoundError("Profile not found")
            return profile

    async def create(self, profile: Profile) -> Profile:
        async with open_session(self._engine) as session:
            session.add(profile)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ConflictError("Profile already exists") from exc
            await session.refresh(profile)
            logger.info("profile_created", user_id=profile.id)
            return profile


class InMemoryProfileRepository:
    """In-memory fallback for dev/testing without a database."""

    def __init__(self) -> None:
        self._profiles: dict[str, Profile] = {}

    async def get(self, user_id: str) -> Profile:
        profile = self._profiles.get(user_id)
        if profile is None:
            raise NotFoundError("Profile not found")
        return profile

    async def create(self, profile: Profile) -> Profile:
        if profile.id in self._profiles:
            raise ConflictError("Profile already exists")
        self._profiles[profile.id] = profile
        logger.info("profile_created", user_id=profile.id)
        return profile

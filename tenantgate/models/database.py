"""SQLModel database table models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel


def _utc_now() -> datetime:
    """Return current UTC time as naive datetime for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def _new_uuid() -> str:
    return str(uuid.uuid4())


def _default_tenant_settings() -> dict[str, Any]:
    return {"theme": "light"}


class Tenant(SQLModel, table=True):
    __tablename__ = "tenants"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    name: str
    slug: str = Field(unique=True, index=True)
    created_by: str = Field(index=True)
    settings: dict[str, Any] = Field(
        default_factory=_default_tenant_settings, sa_column=Column(JSON, nullable=False)
    )
    subscription_tier: str = Field(default="basic")
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime | None = None


class TenantUser(SQLModel, table=True):
    __tablename__ = "tenant_users"
    __table_args__ = (UniqueConstraint("tenant_id", "user_id", name="uq_tenant_users_tenant_user"),)

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True, ondelete="CASCADE")
    user_id: str = Field(index=True)
    role: str = Field(default="member")  # owner | admin | member
    created_at: datetime = Field(default_factory=_utc_now)


class Profile(SQLModel, table=True):
    __tablename__ = "profiles"

    id: str = Field(primary_key=True)  # same as the auth user id
    email: str = Field(index=True)
    full_name: str = ""
    avatar_url: str = ""
    created_at: datetime = Field(default_factory=_utc_now)

"""API request/response schemas for FastAPI endpoints."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

Role = Literal["owner", "admin", "member"]


class CredentialsRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1)


class TenantCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    settings: dict[str, Any] | None = None


class TenantUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    settings: dict[str, Any] | None = None
    subscription_tier: str | None = None


class TenantResponse(BaseModel):
    id: str
    name: str
    slug: str
    created_by: str
    settings: dict[str, Any]
    subscription_tier: str
    created_at: datetime
    updated_at: datetime | None = None


class TenantListResponse(BaseModel):
    tenants: list[TenantResponse]
    current_tenant_id: str | None
    error: str | None = None


class SwitchTenantRequest(BaseModel):
    tenant_id: str


class MemberCreate(BaseModel):
    user_id: str
    role: Role = "member"


class MemberUpdate(BaseModel):
    role: Role


class MemberResponse(BaseModel):
    id: str
    tenant_id: str
    user_id: str
    role: str
    created_at: datetime


class UserResponse(BaseModel):
    id: str
    email: str
    role: str


class DashboardStats(BaseModel):
    tenants: int = 0
    members: int = 0

"""Shared test fixtures."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import tenantgate.models.database  # noqa: F401  (registers tables on the metadata)
from tenantgate.auth.memory import InMemoryAuthClient
from tenantgate.backend import build_backend
from tenantgate.config.settings import Settings
from tenantgate.storage.repositories.tenants import InMemoryTenantRepository
from tenantgate.web.app import create_app

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"
PASSWORD = "correct-horse-battery"


@pytest.fixture()
def settings() -> Settings:
    return Settings(_env_file=None, debug=True, secret_key=TEST_SECRET)


@pytest.fixture()
def auth_client() -> InMemoryAuthClient:
    return InMemoryAuthClient(secret_key=TEST_SECRET)


@pytest.fixture()
def tenant_repo() -> InMemoryTenantRepository:
    return InMemoryTenantRepository()


@pytest.fixture()
def backend(settings):
    return build_backend(settings)


@pytest.fixture()
def app(settings, backend):
    """Create a fresh app instance with an in-memory backend."""
    return create_app(settings, backend)


@pytest.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture()
async def authed_client(client):
    """An AsyncClient holding a session cookie for a freshly signed-up user."""
    resp = await client.post(
        "/api/auth/signup",
        json={"email": "owner@example.com", "password": PASSWORD},
    )
    assert resp.status_code == 200, resp.text
    return client


@pytest.fixture()
async def async_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()

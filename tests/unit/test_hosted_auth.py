"""Unit tests for HostedAuthClient against a mocked HTTP transport."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from tenantgate.auth.client import AuthEvent
from tenantgate.auth.hosted import HostedAuthClient
from tenantgate.exceptions import AuthApiError, BackendConnectionError

BASE = "https://project.example.co/auth/v1"

USER = {
    "id": "user-123",
    "email": "alice@example.com",
    "role": "authenticated",
    "app_metadata": {"role": "admin"},
    "user_metadata": {"full_name": "Alice"},
}
SESSION = {
    "access_token": "access-abc",
    "refresh_token": "refresh-abc",
    "expires_in": 3600,
    "token_type": "bearer",
    "user": USER,
}


def _client(handler: Any) -> HostedAuthClient:
    http = httpx.AsyncClient(base_url=BASE, transport=httpx.MockTransport(handler))
    return HostedAuthClient(BASE, "anon-key", http_client=http)


@pytest.mark.unit
class TestHostedAuthClient:
    async def test_sign_in_parses_session_and_sends_api_key(self) -> None:
        captured: dict[str, Any] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["grant_type"] = request.url.params.get("grant_type")
            captured["apikey"] = request.headers.get("apikey")
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=SESSION)

        client = _client(handler)
        events: list[AuthEvent] = []
        client.on_auth_state_change(lambda event, _s: events.append(event))

        session = await client.sign_in_with_password("alice@example.com", "secret-pass")

        assert captured["path"] == "/auth/v1/token"
        assert captured["grant_type"] == "password"
        assert captured["apikey"] == "anon-key"
        assert captured["body"] == {"email": "alice@example.com", "password": "secret-pass"}
        assert session.access_token == "access-abc"
        assert session.user.role == "admin"
        assert session.user.user_metadata["full_name"] == "Alice"
        assert events == [AuthEvent.SIGNED_IN]
        await client.aclose()

    async def test_backend_message_surfaced_verbatim(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                400,
                json={"error": "invalid_grant", "error_description": "Invalid login credentials"},
            )

        client = _client(handler)
        with pytest.raises(AuthApiError, match="Invalid login credentials") as excinfo:
            await client.sign_in_with_password("alice@example.com", "wrong")
        assert excinfo.value.status_code == 400

    async def test_network_failure_raises_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)
        with pytest.raises(BackendConnectionError, match="Failed to fetch"):
            await client.sign_in_with_password("alice@example.com", "secret-pass")

    async def test_get_session_uses_bearer_token(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.headers.get("authorization") == "Bearer access-abc":
                return httpx.Response(200, json=USER)
            return httpx.Response(401, json={"msg": "invalid JWT"})

        client = _client(handler)
        session = await client.get_session("access-abc")
        assert session is not None
        assert session.user.id == "user-123"
        assert await client.get_session("expired") is None
        assert await client.get_session(None) is None

    async def test_get_session_network_failure_propagates(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = _client(handler)
        with pytest.raises(BackendConnectionError):
            await client.get_session("access-abc")

    async def test_sign_up_pending_confirmation_returns_none(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params.get("redirect_to") == "https://app.example/auth/callback"
            return httpx.Response(200, json=USER)

        client = _client(handler)
        result = await client.sign_up(
            "alice@example.com", "secret-pass", redirect_to="https://app.example/auth/callback"
        )
        assert result is None

    async def test_sign_up_duplicate_email(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, json={"msg": "User already registered"})

        client = _client(handler)
        with pytest.raises(AuthApiError, match="User already registered"):
            await client.sign_up("alice@example.com", "secret-pass")

    async def test_sign_out_emits_event(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/auth/v1/logout"
            return httpx.Response(204)

        client = _client(handler)
        events: list[AuthEvent] = []
        client.on_auth_state_change(lambda event, _s: events.append(event))
        await client.sign_out("access-abc")
        assert events == [AuthEvent.SIGNED_OUT]

    async def test_malformed_session_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"unexpected": True})

        client = _client(handler)
        with pytest.raises(AuthApiError, match="Malformed"):
            await client.refresh_session("refresh-abc")

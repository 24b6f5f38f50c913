"""Unit tests for SessionProvider."""

from __future__ import annotations

import pytest

from tenantgate.auth.memory import InMemoryAuthClient
from tenantgate.auth.provider import (
    DASHBOARD_PATH,
    LOGIN_PATH,
    SIGNUP_CONFIRMATION_MESSAGE,
    SessionProvider,
    open_session_provider,
)
from tenantgate.exceptions import (
    NETWORK_ERROR_MESSAGE,
    AuthFailedError,
    BackendConnectionError,
)

PASSWORD = "correct-horse-battery"


class _UnreachableAuth(InMemoryAuthClient):
    """Auth client whose network calls all fail."""

    async def get_session(self, access_token):
        raise BackendConnectionError("Failed to fetch")

    async def sign_in_with_password(self, email, password):
        raise BackendConnectionError("Failed to fetch")


@pytest.mark.unit
class TestInitialize:
    async def test_no_token_means_no_session(self, auth_client: InMemoryAuthClient) -> None:
        provider = await SessionProvider(auth_client).initialize()
        assert provider.session is None
        assert provider.user is None
        assert provider.loading is False

    async def test_existing_token_restores_session(self, auth_client: InMemoryAuthClient) -> None:
        session = await auth_client.sign_up("alice@example.com", PASSWORD)
        provider = await SessionProvider(auth_client, session.access_token).initialize()
        assert provider.user is not None
        assert provider.user.email == "alice@example.com"

    async def test_unreachable_backend_counts_as_signed_out(self) -> None:
        provider = await SessionProvider(_UnreachableAuth("k" * 32), "token").initialize()
        assert provider.session is None
        assert provider.loading is False


@pytest.mark.unit
class TestSignInOut:
    async def test_sign_in_sets_session_and_redirect(self, auth_client: InMemoryAuthClient) -> None:
        await auth_client.sign_up("alice@example.com", PASSWORD)
        async with open_session_provider(auth_client) as provider:
            session = await provider.sign_in("alice@example.com", PASSWORD)
            assert provider.session == session
            assert provider.redirect_to == DASHBOARD_PATH
            assert provider.error is None

    async def test_wrong_password_raises_backend_message(
        self, auth_client: InMemoryAuthClient
    ) -> None:
        await auth_client.sign_up("alice@example.com", PASSWORD)
        provider = await SessionProvider(auth_client).initialize()
        with pytest.raises(AuthFailedError, match="Invalid login credentials"):
            await provider.sign_in("alice@example.com", "wrong-password")
        assert provider.error == "Invalid login credentials"
        assert provider.session is None

    async def test_network_failure_uses_connection_message(self) -> None:
        provider = await SessionProvider(_UnreachableAuth("k" * 32)).initialize()
        with pytest.raises(AuthFailedError) as excinfo:
            await provider.sign_in("alice@example.com", PASSWORD)
        assert str(excinfo.value) == NETWORK_ERROR_MESSAGE

    async def test_sign_out_clears_session(self, auth_client: InMemoryAuthClient) -> None:
        session = await auth_client.sign_up("alice@example.com", PASSWORD)
        provider = await SessionProvider(auth_client, session.access_token).initialize()
        await provider.sign_out()
        assert provider.session is None
        assert provider.redirect_to == LOGIN_PATH
        assert await auth_client.get_session(session.access_token) is None

    async def test_sign_out_without_session_only_redirects(
        self, auth_client: InMemoryAuthClient
    ) -> None:
        provider = await SessionProvider(auth_client).initialize()
        await provider.sign_out()
        assert provider.redirect_to == LOGIN_PATH

    async def test_events_do_not_leak_between_providers(
        self, auth_client: InMemoryAuthClient
    ) -> None:
        await auth_client.sign_up("alice@example.com", PASSWORD)
        await auth_client.sign_up("bob@example.com", PASSWORD)
        alice = await SessionProvider(auth_client).initialize()
        bob = await SessionProvider(auth_client).initialize()

        await alice.sign_in("alice@example.com", PASSWORD)

        assert alice.user is not None
        assert bob.session is None
        assert bob.redirect_to is None

    async def test_close_stops_listening(self, auth_client: InMemoryAuthClient) -> None:
        before = len(auth_client._listeners)
        provider = await SessionProvider(auth_client).initialize()
        assert len(auth_client._listeners) == before + 1
        provider.close()
        provider.close()
        assert len(auth_client._listeners) == before


@pytest.mark.unit
class TestSignUp:
    async def test_sign_up_success(self, auth_client: InMemoryAuthClient) -> None:
        provider = await SessionProvider(auth_client).initialize()
        result = await provider.sign_up("alice@example.com", PASSWORD)
        assert result.success is True
        assert result.message == SIGNUP_CONFIRMATION_MESSAGE
        assert result.session is not None

    async def test_duplicate_email_reported_not_raised(
        self, auth_client: InMemoryAuthClient
    ) -> None:
        await auth_client.sign_up("alice@example.com", PASSWORD)
        provider = await SessionProvider(auth_client).initialize()
        result = await provider.sign_up("alice@example.com", PASSWORD)
        assert result.success is False
        assert result.message == "User already registered"
        assert provider.error == "User already registered"

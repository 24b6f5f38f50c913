"""Auth client for a hosted GoTrue-compatible auth service."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from tenantgate.auth.client import AuthEvent, AuthSession, AuthStateNotifier, AuthUser
from tenantgate.exceptions import AuthApiError, BackendConnectionError

logger = structlog.get_logger(__name__)

_TIMEOUT = 10.0


def _parse_user(data: dict[str, Any]) -> AuthUser:
    app_metadata = data.get("app_metadata") or {}
    return AuthUser(
        id=data["id"],
        email=data.get("email", ""),
        role=app_metadata.get("role") or data.get("role") or "authenticated",
        user_metadata=data.get("user_metadata") or {},
    )


def _parse_session(data: dict[str, Any] | None) -> AuthSession:
    if not data or "access_token" not in data or "user" not in data:
        raise AuthApiError("Malformed session response from auth service", 502)
    return AuthSession(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token", ""),
        user=_parse_user(data["user"]),
        expires_in=int(data.get("expires_in", 3600)),
        token_type=data.get("token_type", "bearer"),
    )


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"Auth request failed ({resp.status_code})"
    if isinstance(body, dict):
        for key in ("error_description", "msg", "message", "error"):
            if body.get(key):
                return str(body[key])
    return f"Auth request failed ({resp.status_code})"


class HostedAuthClient(AuthStateNotifier):
    """Talks to ``{base_url}/auth/v1`` with the project's anon key."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__()
        self._anon_key = anon_key
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/auth/v1", timeout=_TIMEOUT
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        access_token: str | None = None,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        headers = {"apikey": self._anon_key}
        headers["Authorization"] = f"Bearer {access_token or self._anon_key}"
        try:
            resp = await self._client.request(
                method, path, headers=headers, params=params, json=json
            )
        except httpx.TransportError as exc:
            logger.warning("auth_backend_unreachable", path=path, error=str(exc))
            raise BackendConnectionError("Failed to fetch") from exc

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.info("auth_request_rejected", path=path, status=resp.status_code)
            raise AuthApiError(message, resp.status_code)
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    async def get_session(self, access_token: str | None) -> AuthSession | None:
        if not access_token:
            return None
        try:
            data = await self._request("GET", "/user", access_token=access_token)
        except AuthApiError:
            return None
        if not data:
            return None
        return AuthSession(access_token=access_token, refresh_token="", user=_parse_user(data))

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        data = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = _parse_session(data)
        self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_up(self, email: str, password: str, redirect_to: str = "") -> AuthSession | None:
        """Register an account.

        Returns ``None`` when the service requires email confirmation first.
        """
        params = {"redirect_to": redirect_to} if redirect_to else None
        data = await self._request(
            "POST", "/signup", params=params, json={"email": email, "password": password}
        )
        if not data or "access_token" not in data:
            logger.info("auth_signup_pending_confirmation", email=email)
            return None
        session = _parse_session(data)
        self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_out(self, access_token: str) -> None:
        await self._request("POST", "/logout", access_token=access_token)
        self._emit(AuthEvent.SIGNED_OUT, None)

    async def refresh_session(self, refresh_token: str) -> AuthSession:
        data = await self._request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        session = _parse_session(data)
        self._emit(AuthEvent.TOKEN_REFRESHED, session)
        return session

    async def exchange_code_for_session(self, code: str) -> AuthSession:
        data = await self._request(
            "POST", "/token", params={"grant_type": "pkce"}, json={"auth_code": code}
        )
        session = _parse_session(data)
        self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def ping(self) -> None:
        """Raise unless the auth service answers its health probe."""
        await self._request("GET", "/health")

    async def aclose(self) -> None:
        self._listeners.clear()
        await self._client.aclose()

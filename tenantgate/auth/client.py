"""Auth client contract shared by the hosted and in-memory backends."""

from __future__ import annotations

import contextlib
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

import structlog

logger = structlog.get_logger(__name__)


class AuthEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


@dataclass(frozen=True, slots=True)
class AuthUser:
    """The authenticated user as reported by the auth service."""

    id: str
    email: str
    role: str = "authenticated"
    user_metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AuthSession:
    """Token pair plus the user it belongs to."""

    access_token: str
    refresh_token: str
    user: AuthUser
    expires_in: int = 3600
    token_type: str = "bearer"


AuthListener = Callable[[AuthEvent, AuthSession | None], None]


class Subscription:
    """Handle returned by ``on_auth_state_change``; call ``unsubscribe`` when done."""

    def __init__(self, listeners: list[AuthListener], listener: AuthListener) -> None:
        self._listeners = listeners
        self._listener = listener

    def unsubscribe(self) -> None:
        with contextlib.suppress(ValueError):
            self._listeners.remove(self._listener)


class AuthStateNotifier:
    """Fan-out of auth-state changes to subscribed listeners."""

    def __init__(self) -> None:
        self._listeners: list[AuthListener] = []

    def on_auth_state_change(self, listener: AuthListener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self._listeners, listener)

    def _emit(self, event: AuthEvent, session: AuthSession | None) -> None:
        logger.debug("auth_state_changed", auth_event=event.value, listeners=len(self._listeners))
        for listener in list(self._listeners):
            listener(event, session)


class AuthClient(Protocol):
    """Operations the app needs from the auth service.

    Every method raises a ``BackendError`` subclass on failure.
    """

    async def get_session(self, access_token: str | None) -> AuthSession | None: ...

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession: ...

    async def sign_up(self, email: str, password: str, redirect_to: str = "") -> AuthSession | None: ...

    async def sign_out(self, access_token: str) -> None: ...

    async def refresh_session(self, refresh_token: str) -> AuthSession: ...

    async def exchange_code_for_session(self, code: str) -> AuthSession: ...

    def on_auth_state_change(self, listener: AuthListener) -> Subscription: ...

    async def ping(self) -> None: ...

    async def aclose(self) -> None: ...

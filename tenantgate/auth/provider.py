"""Session provider: current-user state on top of an auth client."""

from __future__ import annotations

import contextvars
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from tenantgate.auth.client import AuthEvent
from tenantgate.exceptions import AuthFailedError, BackendError, user_message

if TYPE_CHECKING:
    from tenantgate.auth.client import AuthClient, AuthSession, AuthUser, Subscription

logger = structlog.get_logger(__name__)

LOGIN_PATH = "/login"
DASHBOARD_PATH = "/dashboard"
SIGNUP_CONFIRMATION_MESSAGE = "Check your email for the confirmation link"

# The auth client is shared by every request; listeners only react to events
# raised from inside their own provider's calls.
_acting_provider: contextvars.ContextVar[SessionProvider | None] = contextvars.ContextVar(
    "acting_provider", default=None
)


@dataclass(frozen=True, slots=True)
class SignUpResult:
    success: bool
    message: str
    session: AuthSession | None = None


class SessionProvider:
    """Tracks the signed-in user for one browser session.

    Call ``initialize()`` once, then use ``sign_in`` / ``sign_up`` /
    ``sign_out``. After an auth event, ``redirect_to`` holds the page the
    user should be sent to. ``close()`` drops the auth-state subscription.
    """

    def __init__(self, auth_client: AuthClient, access_token: str | None = None) -> None:
        self._auth = auth_client
        self._access_token = access_token
        self._subscription: Subscription | None = None
        self.session: AuthSession | None = None
        self.loading = True
        self.error: str | None = None
        self.redirect_to: str | None = None

    @property
    def user(self) -> AuthUser | None:
        return self.session.user if self.session else None

    async def initialize(self) -> SessionProvider:
        """Fetch the current session once and start listening for changes."""
        try:
            self.session = await self._auth.get_session(self._access_token)
        except BackendError as exc:
            logger.warning("session_read_failed", error=str(exc))
            self.session = None
        finally:
            self.loading = False
        if self._subscription is None:
            self._subscription = self._auth.on_auth_state_change(self._on_auth_state_change)
        return self

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def _on_auth_state_change(self, event: AuthEvent, session: AuthSession | None) -> None:
        if _acting_provider.get() is not self:
            return
        self.session = session
        if event is AuthEvent.SIGNED_OUT:
            self.redirect_to = LOGIN_PATH
        elif event is AuthEvent.SIGNED_IN:
            self.redirect_to = DASHBOARD_PATH

    async def sign_in(self, email: str, password: str) -> AuthSession:
        self.error = None
        token = _acting_provider.set(self)
        try:
            return await self._auth.sign_in_with_password(email, password)
        except Exception as exc:
            self.error = user_message(exc)
            logger.info("sign_in_failed", error=self.error)
            raise AuthFailedError(self.error) from exc
        finally:
            _acting_provider.reset(token)

    async def sign_up(self, email: str, password: str, redirect_to: str = "") -> SignUpResult:
        """Register an account. Failures are reported in the result, not raised."""
        self.error = None
        token = _acting_provider.set(self)
        try:
            session = await self._auth.sign_up(email, password, redirect_to=redirect_to)
        except Exception as exc:
            self.error = user_message(exc)
            logger.info("sign_up_failed", error=self.error)
            return SignUpResult(success=False, message=self.error)
        finally:
            _acting_provider.reset(token)
        return SignUpResult(success=True, message=SIGNUP_CONFIRMATION_MESSAGE, session=session)

    async def sign_out(self) -> None:
        self.error = None
        access_token = self.session.access_token if self.session else self._access_token
        if not access_token:
            self.redirect_to = LOGIN_PATH
            return
        token = _acting_provider.set(self)
        try:
            await self._auth.sign_out(access_token)
        except Exception as exc:
            self.error = user_message(exc)
            logger.info("sign_out_failed", error=self.error)
            raise AuthFailedError(self.error) from exc
        finally:
            _acting_provider.reset(token)


@asynccontextmanager
async def open_session_provider(
    auth_client: AuthClient, access_token: str | None = None
) -> AsyncIterator[SessionProvider]:
    """Initialize a provider for the duration of one request."""
    provider = SessionProvider(auth_client, access_token)
    await provider.initialize()
    try:
        yield provider
    finally:
        provider.close()

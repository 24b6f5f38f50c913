"""In-process auth client for self-hosted dev mode and tests.

Accounts live in memory; access tokens are HS256 JWTs carrying a session id
so that sign-out can revoke them before they expire.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

import jwt
import structlog

from tenantgate.auth.client import AuthEvent, AuthSession, AuthStateNotifier, AuthUser
from tenantgate.exceptions import AuthApiError

logger = structlog.get_logger(__name__)

_PBKDF2_ITERATIONS = 120_000


@dataclass
class _Account:
    user: AuthUser
    salt: bytes
    password_hash: bytes
    created_at: float = field(default_factory=time.time)


class InMemoryAuthClient(AuthStateNotifier):
    """Auth service stand-in that keeps accounts and sessions in memory."""

    def __init__(
        self,
        secret_key: str,
        session_max_age: int = 3600,
        min_password_length: int = 6,
    ) -> None:
        super().__init__()
        self._secret = secret_key
        self._max_age = session_max_age
        self._min_password_length = min_password_length
        self._accounts: dict[str, _Account] = {}  # keyed by lowercased email
        self._sessions: dict[str, str] = {}  # session id -> user id
        self._refresh_tokens: dict[str, str] = {}  # refresh token -> session id

    # ------------------------------------------------------------------
    # Account management
    # ------------------------------------------------------------------

    async def sign_up(self, email: str, password: str, redirect_to: str = "") -> AuthSession:
        """Register an account and sign it in immediately (no email confirmation)."""
        key = email.strip().lower()
        if not key or "@" not in key:
            raise AuthApiError("Unable to validate email address: invalid format", 422)
        if len(password) < self._min_password_length:
            raise AuthApiError(
                f"Password should be at least {self._min_password_length} characters", 422
            )
        if key in self._accounts:
            raise AuthApiError("User already registered", 422)

        salt = secrets.token_bytes(16)
        user = AuthUser(id=str(uuid.uuid4()), email=key)
        self._accounts[key] = _Account(
            user=user, salt=salt, password_hash=self._hash_password(password, salt)
        )
        logger.info("auth_user_registered", user_id=user.id)
        session = self._start_session(user)
        self._emit(AuthEvent.SIGNED_IN, session)
        return session

    def set_user_role(self, email: str, role: str) -> AuthUser:
        """Change the role metadata carried in future access tokens."""
        account = self._accounts.get(email.strip().lower())
        if account is None:
            raise AuthApiError("User not found", 404)
        account.user = AuthUser(
            id=account.user.id,
            email=account.user.email,
            role=role,
            user_metadata=account.user.user_metadata,
        )
        return account.user

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        account = self._accounts.get(email.strip().lower())
        if account is None or not hmac.compare_digest(
            account.password_hash, self._hash_password(password, account.salt)
        ):
            raise AuthApiError("Invalid login credentials", 400)
        session = self._start_session(account.user)
        logger.info("auth_signed_in", user_id=account.user.id)
        self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def get_session(self, access_token: str | None) -> AuthSession | None:
        if not access_token:
            return None
        claims = self._decode(access_token)
        if claims is None or claims.get("sid") not in self._sessions:
            return None
        account = self._accounts.get(claims.get("email", ""))
        if account is None:
            return None
        return AuthSession(
            access_token=access_token,
            refresh_token="",
            user=account.user,
            expires_in=max(0, int(claims["exp"] - time.time())),
        )

    async def refresh_session(self, refresh_token: str) -> AuthSession:
        session_id = self._refresh_tokens.pop(refresh_token, None)
        user_id = self._sessions.pop(session_id, None) if session_id else None
        account = self._account_by_id(user_id) if user_id else None
        if account is None:
            raise AuthApiError("Invalid Refresh Token: Refresh Token Not Found", 400)
        session = self._start_session(account.user)
        self._emit(AuthEvent.TOKEN_REFRESHED, session)
        return session

    async def sign_out(self, access_token: str) -> None:
        claims = self._decode(access_token)
        if claims is not None:
            session_id = claims.get("sid")
            self._sessions.pop(session_id, None)
            for token, sid in list(self._refresh_tokens.items()):
                if sid == session_id:
                    del self._refresh_tokens[token]
            logger.info("auth_signed_out", user_id=claims.get("sub"))
        self._emit(AuthEvent.SIGNED_OUT, None)

    async def exchange_code_for_session(self, code: str) -> AuthSession:
        raise AuthApiError("Code exchange is not supported by the in-memory auth backend", 400)

    async def ping(self) -> None:
        return None

    async def aclose(self) -> None:
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start_session(self, user: AuthUser) -> AuthSession:
        session_id = secrets.token_urlsafe(16)
        now = int(time.time())
        claims: dict[str, Any] = {
            "sub": user.id,
            "email": user.email,
            "role": user.role,
            "sid": session_id,
            "iat": now,
            "exp": now + self._max_age,
        }
        access_token = jwt.encode(claims, self._secret, algorithm="HS256")
        refresh_token = secrets.token_urlsafe(32)
        self._sessions[session_id] = user.id
        self._refresh_tokens[refresh_token] = session_id
        return AuthSession(
            access_token=access_token,
            refresh_token=refresh_token,
            user=user,
            expires_in=self._max_age,
        )

    def _decode(self, token: str) -> dict[str, Any] | None:
        try:
            return jwt.decode(token, self._secret, algorithms=["HS256"])
        except jwt.PyJWTError:
            return None

    def _account_by_id(self, user_id: str) -> _Account | None:
        for account in self._accounts.values():
            if account.user.id == user_id:
                return account
        return None

    @staticmethod
    def _hash_password(password: str, salt: bytes) -> bytes:
        return hashlib.pbkdf2_hmac("sha256", password.encode(), salt, _PBKDF2_ITERATIONS)

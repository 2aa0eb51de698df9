"""
auth/session.py -- The Session Manager: signup, login, logout, refresh.

Refresh-token lifecycle:

    ISSUED --refresh--> ISSUED --logout / expiry seen--> (row absent, terminal)

Refresh never rotates the token; a row stays ISSUED until it is deleted.
Deleting the row is the only revocation. Access tokens already handed out
stay valid until their own exp.

Boundary policy: every public method lets ServiceError subclasses through
untouched and turns anything else (store outage, hashing failure) into
InternalError. The underlying exception is logged here and never reaches the
caller.

Layer rule: no imports from api/. The manager knows nothing about HTTP.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from functools import wraps

from auth.errors import (
    AuthError,
    ConflictError,
    InternalError,
    InvalidTokenError,
    ServiceError,
    TokenExpiredError,
    ValidationError,
)
from auth.models import LoginResult, RefreshToken, User, UserPublic
from auth.store import CredentialStore, TokenStore
from auth.tokens import BcryptHasher, TokenSigner

logger = logging.getLogger("credsvc.session")

# Row expiry is fixed regardless of the refresh JWT's own TTL setting. refresh()
# checks both; whichever runs out first ends the session.
REFRESH_TOKEN_LIFETIME = timedelta(days=7)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _boundary(operation: str):
    """Downgrade unclassified failures to InternalError, logging the detail."""

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except ServiceError:
                raise
            except Exception as exc:
                logger.exception("%s failed", operation)
                raise InternalError(operation=operation) from exc

        return wrapper

    return decorator


def _missing(**fields) -> list[str]:
    return [name for name, value in fields.items() if not value]


class SessionManager:
    """Orchestrates identity and session continuity over two injected stores.

    Usage:
        manager = SessionManager(users, tokens, BcryptHasher(10), TokenSigner(settings))
        manager.signup("a@x.com", "pw123456", "A")
        result = manager.login("a@x.com", "pw123456")
        access = manager.refresh(result.refresh_token)
        manager.logout(result.refresh_token)

    clock is injectable so tests can move time without sleeping.
    """

    def __init__(
        self,
        users: CredentialStore,
        tokens: TokenStore,
        hasher: BcryptHasher,
        signer: TokenSigner,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.users = users
        self.tokens = tokens
        self.hasher = hasher
        self.signer = signer
        self.clock = clock

    @_boundary("signup")
    def signup(self, email: str | None, password: str | None, name: str | None) -> UserPublic:
        missing = _missing(email=email, password=password, name=name)
        if missing:
            raise ValidationError("Email, password, and name are required", fields=missing)

        if self.users.get_by_email(email) is not None:
            raise ConflictError("User already exists", email=email)

        user = self.users.create_user(User(email=email, password_hash=self.hasher.hash(password), name=name))
        logger.info("User %s signed up", user.id)
        return user.to_public()

    @_boundary("login")
    def login(self, email: str | None, password: str | None) -> LoginResult:
        missing = _missing(email=email, password=password)
        if missing:
            raise ValidationError("Email and password are required", fields=missing)

        user = self.users.get_by_email(email)
        if user is None:
            # Same bcrypt cost as a real check [C1]
            self.hasher.verify_dummy(password)
            raise AuthError()
        if not self.hasher.verify(password, user.password_hash):
            raise AuthError()

        access_token = self.signer.create_access_token(user)
        refresh_token = self.signer.create_refresh_token(user)
        self.tokens.create(
            RefreshToken(
                token=refresh_token,
                user_id=user.id,
                expires_at=self.clock() + REFRESH_TOKEN_LIFETIME,
            )
        )
        logger.info("User %s logged in", user.id)
        return LoginResult(access_token=access_token, refresh_token=refresh_token, user=user.to_public())

    @_boundary("logout")
    def logout(self, refresh_token: str | None) -> None:
        """Revoke a refresh token. Unknown or already-revoked tokens are a no-op."""
        if not refresh_token:
            raise ValidationError("Refresh token required", fields=["refreshToken"])
        removed = self.tokens.delete(refresh_token)
        logger.info("Logout removed %d refresh token(s)", removed)

    @_boundary("refresh")
    def refresh(self, refresh_token: str | None) -> str:
        """Exchange a live refresh token for a new access token."""
        if not refresh_token:
            raise ValidationError("Refresh token required", fields=["refreshToken"])

        # Signature and embedded expiry first; the store is never consulted
        # for a token we did not sign.
        if self.signer.decode_refresh_token(refresh_token) is None:
            raise InvalidTokenError()

        stored = self.tokens.get(refresh_token)
        if stored is None:
            raise InvalidTokenError()

        if stored.is_expired(self.clock()):
            self.tokens.delete(refresh_token)
            logger.info("Refresh token for user %s expired; row removed", stored.user_id)
            raise TokenExpiredError(user_id=stored.user_id)

        user = self.users.get_by_id(stored.user_id)
        if user is None:
            raise InvalidTokenError(user_id=stored.user_id)

        return self.signer.create_access_token(user)

    @_boundary("purge_expired")
    def purge_expired(self) -> int:
        """Delete every stored refresh token whose expiry has passed."""
        return self.tokens.delete_expired(self.clock())

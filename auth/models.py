"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and the
session manager do the work; api/models.py owns the HTTP shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """A registered identity.

    email is unique and case-sensitive: it is stored and matched exactly as
    given at signup. password_hash is the bcrypt digest and must never leave
    the auth package -- use to_public() for anything caller-facing.
    """

    email: str
    password_hash: str
    name: str
    id: int | None = None
    created_at: str | None = None  # ISO 8601 UTC, set by the store

    def to_public(self) -> UserPublic:
        return UserPublic(id=self.id, email=self.email, name=self.name, created_at=self.created_at)


@dataclass(frozen=True)
class UserPublic:
    """Caller-safe projection of a User. Has no password field at all."""

    id: int | None
    email: str
    name: str
    created_at: str | None = None


@dataclass
class RefreshToken:
    """A persisted refresh token row.

    The row's existence with expires_at in the future is the sole authority
    for a live session. Deleting it is the only way to revoke.
    """

    token: str
    user_id: int
    expires_at: datetime  # timezone-aware UTC
    id: int | None = None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass(frozen=True)
class AccessClaims:
    """Verified contents of an access token."""

    user_id: int
    email: str
    issued_at: datetime
    expires_at: datetime
    jti: str


@dataclass(frozen=True)
class LoginResult:
    access_token: str
    refresh_token: str
    user: UserPublic

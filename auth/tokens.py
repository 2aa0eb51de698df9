"""
auth/tokens.py -- JWT signing and password hashing primitives.

Security design decisions:
  JWT: python-jose with HS256. Two independent secrets -- one for access
       tokens, one for refresh tokens -- plus a "type" claim, so a refresh
       token can never verify where an access token is expected and vice
       versa. Decoders return None on any failure; the session layer and
       the auth dependency turn that into the right error.

       Every token carries a random jti. Without it, two tokens minted for the
       same user within the same second would be byte-identical, which breaks
       the unique index on refresh_tokens.token.

  Passwords: bcrypt directly (no passlib wrapper). The cost factor comes from
       Settings.bcrypt_rounds. A dummy hash is computed once per hasher so
       login can spend the same bcrypt work for unknown emails as for wrong
       passwords [C1].

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

from auth.models import AccessClaims, User
from core.config import Settings

_ALGORITHM = "HS256"

ACCESS_TYPE = "access"
REFRESH_TYPE = "refresh"


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


class BcryptHasher:
    """One-way salted password hasher.

    bcrypt silently truncates input past 72 bytes, and bcrypt 4.x rejects it
    outright on hashpw, so plaintext is truncated here before hashing and
    before verifying.
    """

    def __init__(self, rounds: int = 10) -> None:
        self.rounds = rounds
        self._dummy_hash = self.hash("credsvc_timing_dummy")

    @staticmethod
    def _encode(plain: str) -> bytes:
        return plain.encode("utf-8")[:72]

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the given plaintext password."""
        return bcrypt.hashpw(self._encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext password matches the bcrypt hash."""
        try:
            return bcrypt.checkpw(self._encode(plain), hashed.encode("utf-8"))
        except ValueError:
            # Not a bcrypt hash at all (corrupt row). Fail closed.
            return False

    def verify_dummy(self, plain: str) -> None:
        """Burn one verification's worth of bcrypt work [C1]."""
        self.verify(plain, self._dummy_hash)


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


class TokenSigner:
    """Stateless token signing primitive shared by the session layer and the
    bearer-token dependency.

    Usage:
        signer = TokenSigner(settings)
        token = signer.create_access_token(user)
        claims = signer.decode_access_token(token)   # AccessClaims or None
    """

    def __init__(self, settings: Settings) -> None:
        self._access_secret = settings.jwt_access_secret
        self._refresh_secret = settings.jwt_refresh_secret
        self.access_ttl = timedelta(seconds=settings.jwt_access_expire_seconds)
        self.refresh_ttl = timedelta(seconds=settings.jwt_refresh_expire_seconds)

    def create_access_token(self, user: User) -> str:
        """Encode a signed access token asserting user id and email."""
        payload = self._base_claims(user, ACCESS_TYPE, self.access_ttl)
        payload["email"] = user.email
        return jwt.encode(payload, self._access_secret, algorithm=_ALGORITHM)

    def create_refresh_token(self, user: User) -> str:
        """Encode a signed refresh token. Carries identity only, no email."""
        payload = self._base_claims(user, REFRESH_TYPE, self.refresh_ttl)
        return jwt.encode(payload, self._refresh_secret, algorithm=_ALGORITHM)

    def decode_access_token(self, token: str) -> AccessClaims | None:
        """Verify an access token. Returns None on any failure."""
        payload = self._decode(token, self._access_secret, ACCESS_TYPE)
        if payload is None or not isinstance(payload.get("email"), str):
            return None
        return AccessClaims(
            user_id=payload["user_id"],
            email=payload["email"],
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            jti=payload["jti"],
        )

    def decode_refresh_token(self, token: str) -> dict[str, Any] | None:
        """Verify a refresh token's signature, structure and embedded expiry.

        Says nothing about whether the token is still live -- that is the
        token store's job.
        """
        return self._decode(token, self._refresh_secret, REFRESH_TYPE)

    @staticmethod
    def _base_claims(user: User, token_type: str, ttl: timedelta) -> dict[str, Any]:
        now = datetime.now(timezone.utc)
        return {
            "sub": str(user.id),
            "user_id": user.id,
            "type": token_type,
            "jti": secrets.token_hex(16),
            "iat": now,
            "exp": now + ttl,
        }

    @staticmethod
    def _decode(token: str, secret: str, expected_type: str) -> dict[str, Any] | None:
        if not isinstance(token, str) or not token:
            return None
        try:
            payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
        except JWTError:
            return None
        if payload.get("type") != expected_type:
            return None
        if not isinstance(payload.get("user_id"), int) or "jti" not in payload or "iat" not in payload:
            return None
        return payload

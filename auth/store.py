"""
auth/store.py -- Persistence seams for users and refresh tokens.

Two layers live here:

  CredentialStore / TokenStore (typing.Protocol): the capabilities the
  SessionManager needs. Anything with these methods can be injected --
  tests use plain in-memory fakes.

  UserStore / RefreshTokenStore: SQLAlchemy Core repositories implementing
  those protocols. Pattern: Repository + Data Mapper. _row_to_user and
  _row_to_refresh_token are the mappers; route and session code never touch
  SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Consistency:
  Every mutation is a single-row INSERT or DELETE committed on its own.
  Nothing here needs a multi-statement transaction.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import ConflictError
from auth.models import RefreshToken, User

logger = logging.getLogger("credsvc.store")

# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------


class CredentialStore(Protocol):
    def get_by_email(self, email: str) -> User | None: ...

    def get_by_id(self, user_id: int) -> User | None: ...

    def create_user(self, user: User) -> User:
        """Persist and return the user with id and created_at filled in.

        Raises ConflictError if the email is taken.
        """
        ...


class TokenStore(Protocol):
    def create(self, token: RefreshToken) -> RefreshToken: ...

    def get(self, token: str) -> RefreshToken | None: ...

    def delete(self, token: str) -> int:
        """Delete rows matching the token value. Returns rows removed (0 is fine)."""
        ...

    def delete_expired(self, now: datetime) -> int: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password", String(255), nullable=False),  # bcrypt hash, never plaintext
    Column("name", String(255), nullable=False),
    Column("created_at", String(32), nullable=False),
)

_refresh_tokens = Table(
    "refresh_tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("token", Text, nullable=False, unique=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("expires_at", String(32), nullable=False),  # ISO 8601 UTC, microsecond precision
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL and foreign keys on every new SQLite connection.

    PRAGMAs are per-connection, so they cannot be set once at startup.
    Foreign keys are needed for ON DELETE CASCADE from users to tokens.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_store_engine(db_url: str) -> Engine:
    """Create an engine for db_url and make sure both tables exist."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
    _metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _to_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class UserStore:
    """Credential store backed by the users table.

    Usage:
        engine = create_store_engine("sqlite:///credsvc.db")
        users = UserStore(engine)
        user = users.create_user(User(email="a@x.com", password_hash=h, name="A"))
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def create_user(self, user: User) -> User:
        """Insert a new user and return it with id and created_at assigned.

        The UNIQUE index on email is the final word: two concurrent signups
        for the same address both pass the session layer's pre-check, and
        the loser lands here as ConflictError.
        """
        created_at = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=user.email,
                        password=user.password_hash,
                        name=user.name,
                        created_at=created_at,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise ConflictError("User already exists") from exc
        return User(
            id=result.inserted_primary_key[0],
            email=user.email,
            password_hash=user.password_hash,
            name=user.name,
            created_at=created_at,
        )


class RefreshTokenStore:
    """Token store backed by the refresh_tokens table."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create(self, token: RefreshToken) -> RefreshToken:
        with self.engine.connect() as conn:
            result = conn.execute(
                _refresh_tokens.insert().values(
                    token=token.token,
                    user_id=token.user_id,
                    expires_at=_to_iso(token.expires_at),
                )
            )
            conn.commit()
        return RefreshToken(
            id=result.inserted_primary_key[0],
            token=token.token,
            user_id=token.user_id,
            expires_at=token.expires_at,
        )

    def get(self, token: str) -> RefreshToken | None:
        """Look up a row by token value. O(1) via the UNIQUE index."""
        with self.engine.connect() as conn:
            row = conn.execute(_refresh_tokens.select().where(_refresh_tokens.c.token == token)).fetchone()
        return _row_to_refresh_token(row) if row is not None else None

    def delete(self, token: str) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.token == token))
            conn.commit()
        return result.rowcount

    def delete_expired(self, now: datetime) -> int:
        """Delete every row whose expiry is strictly before now. Returns rows removed.

        expires_at is stored as fixed-width UTC ISO text, so string order is
        time order.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.expires_at < _to_iso(now)))
            conn.commit()
        if result.rowcount:
            logger.info("Purged %d expired refresh token(s)", result.rowcount)
        return result.rowcount


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password,
        name=row.name,
        created_at=row.created_at,
    )


def _row_to_refresh_token(row) -> RefreshToken:
    return RefreshToken(
        id=row.id,
        token=row.token,
        user_id=row.user_id,
        expires_at=datetime.fromisoformat(row.expires_at),
    )

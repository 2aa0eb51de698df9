"""
tests/conftest.py -- Shared test fixtures for the credential service.

This module provides:
  - settings: a Settings instance with fixed secrets and cheap bcrypt
  - FakeUserStore / FakeTokenStore: dict-backed stores for SessionManager
    unit tests (no SQL at all)
  - make_sql_stores(): isolated in-memory SQLite stores for integration tests
  - api_client: TestClient over create_app() wired to fresh SQL stores

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.
Each api_client gets its own uuid-suffixed name so tests never share rows.
"""

from __future__ import annotations

import uuid
from collections.abc import Generator
from dataclasses import replace
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.main import create_app
from auth.errors import ConflictError
from auth.models import RefreshToken, User
from auth.session import SessionManager
from auth.store import RefreshTokenStore, UserStore, create_store_engine
from auth.tokens import BcryptHasher, TokenSigner
from core.config import Settings

ACCESS_SECRET = "access-secret-for-tests-0123456789abcdef"
REFRESH_SECRET = "refresh-secret-for-tests-0123456789abcdef"


# ---------------------------------------------------------------------------
# In-memory fakes
# ---------------------------------------------------------------------------


class FakeUserStore:
    def __init__(self) -> None:
        self.users: dict[int, User] = {}
        self._next_id = 1

    def get_by_email(self, email: str) -> User | None:
        return next((u for u in self.users.values() if u.email == email), None)

    def get_by_id(self, user_id: int) -> User | None:
        return self.users.get(user_id)

    def create_user(self, user: User) -> User:
        if self.get_by_email(user.email) is not None:
            raise ConflictError("User already exists")
        stored = replace(user, id=self._next_id, created_at=datetime.now(timezone.utc).isoformat())
        self.users[stored.id] = stored
        self._next_id += 1
        return stored


class FakeTokenStore:
    def __init__(self) -> None:
        self.rows: dict[str, RefreshToken] = {}

    def create(self, token: RefreshToken) -> RefreshToken:
        self.rows[token.token] = token
        return token

    def get(self, token: str) -> RefreshToken | None:
        return self.rows.get(token)

    def delete(self, token: str) -> int:
        return 1 if self.rows.pop(token, None) is not None else 0

    def delete_expired(self, now: datetime) -> int:
        expired = [key for key, row in self.rows.items() if row.is_expired(now)]
        for key in expired:
            del self.rows[key]
        return len(expired)


# ---------------------------------------------------------------------------
# Settings and primitives
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(
        debug=False,
        jwt_access_secret=ACCESS_SECRET,
        jwt_refresh_secret=REFRESH_SECRET,
        bcrypt_rounds=4,
        rate_limit_enabled=False,
        _env_file=None,
    )


@pytest.fixture
def signer(settings: Settings) -> TokenSigner:
    return TokenSigner(settings)


@pytest.fixture(scope="session")
def hasher() -> BcryptHasher:
    return BcryptHasher(rounds=4)


@pytest.fixture
def user_store() -> FakeUserStore:
    return FakeUserStore()


@pytest.fixture
def token_store() -> FakeTokenStore:
    return FakeTokenStore()


@pytest.fixture
def manager(user_store, token_store, hasher, signer) -> SessionManager:
    return SessionManager(user_store, token_store, hasher, signer)


# ---------------------------------------------------------------------------
# SQL stores and the HTTP client
# ---------------------------------------------------------------------------


def make_sql_stores(db_suffix: str) -> tuple[Engine, UserStore, RefreshTokenStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so tests don't share state.
    """
    engine = create_store_engine(f"sqlite:///file:test_credsvc_{db_suffix}?mode=memory&cache=shared&uri=true")
    return engine, UserStore(engine), RefreshTokenStore(engine)


@pytest.fixture
def sql_stores() -> Generator[tuple[UserStore, RefreshTokenStore], None, None]:
    engine, users, tokens = make_sql_stores(uuid.uuid4().hex)
    yield users, tokens
    engine.dispose()


@pytest.fixture
def api_client(settings: Settings) -> Generator[TestClient, None, None]:
    """Yield a TestClient for the real app over fresh in-memory SQL stores.

    The stores are also reachable as client.app.state.session_manager.users
    and .tokens for tests that need to seed rows directly.
    """
    engine, users, tokens = make_sql_stores(uuid.uuid4().hex)
    app = create_app(settings, user_store=users, token_store=tokens)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
    engine.dispose()

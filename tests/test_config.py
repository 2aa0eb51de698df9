"""
tests/test_config.py -- Settings validation rules.

Covers:
  - production mode refuses to start without secrets
  - debug mode generates two distinct secrets
  - short secrets are rejected
  - identical access/refresh secrets are rejected
  - environment variables map onto fields
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings, get_settings

GOOD_ACCESS = "a" * 32
GOOD_REFRESH = "r" * 32


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("DEBUG", "JWT_ACCESS_SECRET", "JWT_REFRESH_SECRET", "PORT", "JWT_ACCESS_EXPIRE_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_production_requires_secrets():
    with pytest.raises(ValidationError, match="JWT_ACCESS_SECRET is required"):
        Settings(debug=False, _env_file=None)


def test_debug_generates_distinct_secrets():
    settings = Settings(debug=True, _env_file=None)
    assert len(settings.jwt_access_secret) >= 32
    assert len(settings.jwt_refresh_secret) >= 32
    assert settings.jwt_access_secret != settings.jwt_refresh_secret


def test_short_secret_rejected():
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(jwt_access_secret="short", jwt_refresh_secret=GOOD_REFRESH, _env_file=None)


def test_identical_secrets_rejected():
    with pytest.raises(ValidationError, match="must differ"):
        Settings(jwt_access_secret=GOOD_ACCESS, jwt_refresh_secret=GOOD_ACCESS, _env_file=None)


def test_bcrypt_rounds_bounds():
    with pytest.raises(ValidationError, match="BCRYPT_ROUNDS"):
        Settings(jwt_access_secret=GOOD_ACCESS, jwt_refresh_secret=GOOD_REFRESH, bcrypt_rounds=2, _env_file=None)


def test_defaults():
    settings = Settings(jwt_access_secret=GOOD_ACCESS, jwt_refresh_secret=GOOD_REFRESH, _env_file=None)
    assert settings.port == 3000
    assert settings.jwt_refresh_expire_seconds == 7 * 24 * 60 * 60
    assert settings.bcrypt_rounds == 10
    assert settings.rate_limit_enabled is True


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("JWT_ACCESS_SECRET", GOOD_ACCESS)
    monkeypatch.setenv("JWT_REFRESH_SECRET", GOOD_REFRESH)
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("JWT_ACCESS_EXPIRE_SECONDS", "60")
    settings = get_settings()
    assert settings.port == 8080
    assert settings.jwt_access_expire_seconds == 60
    assert settings.jwt_access_secret == GOOD_ACCESS
    assert get_settings() is settings

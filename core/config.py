"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the credential service happen here. No
module should call os.getenv() directly -- build a Settings once at startup
(get_settings()) and pass it to the components that need it.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_access_secret -> JWT_ACCESS_SECRET).

  @model_validator(mode="after"): Cross-field validation of the two signing
      secrets once every field is resolved.

Security notes:
  [M6] Secrets shorter than 32 chars are rejected outright.

  [M7] In production mode (DEBUG not set or false), missing secrets are a hard
       startup failure. Dev mode generates random ones with a warning.

  [M8] The access and refresh secrets must differ. A shared secret would let a
       refresh token verify where an access token is expected.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("credsvc.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'credsvc.db'}"

_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (with DEBUG=true).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    host: str = "0.0.0.0"  # nosec B104 -- container default, override with HOST
    port: int = 3000
    database_url: str = _DEFAULT_DB_URL
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000"]

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The validator below
    # either generates a dev secret or raises, so callers never see "".
    jwt_access_secret: str = ""
    jwt_refresh_secret: str = ""
    jwt_access_expire_seconds: int = 15 * 60
    jwt_refresh_expire_seconds: int = 7 * 24 * 60 * 60

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 10

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Enforce the signing-secret policy [M6][M7][M8].

        Dev mode (DEBUG=true): auto-generate any missing secret with a warning.
            Issued tokens will not survive a restart.

        Production mode: refuse to start if either secret is missing.
        """
        for field in ("jwt_access_secret", "jwt_refresh_secret"):
            value = getattr(self, field)
            if not value:
                if not self.debug:
                    raise ValueError(
                        f"{field.upper()} is required in production mode. "
                        "Set it in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
                value = secrets.token_hex(32)
                setattr(self, field, value)
                logger.warning("Using auto-generated %s. Tokens will not persist across restarts.", field.upper())
            if len(value) < _MIN_SECRET_LENGTH:
                raise ValueError(f"{field.upper()} must be at least {_MIN_SECRET_LENGTH} characters.")

        if self.jwt_access_secret == self.jwt_refresh_secret:
            raise ValueError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ.")
        if self.jwt_access_expire_seconds <= 0 or self.jwt_refresh_expire_seconds <= 0:
            raise ValueError("Token expiry settings must be positive.")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Call this once at process startup and hand the instance down. In tests,
    construct Settings(...) directly instead, or call get_settings.cache_clear()
    after changing the environment.
    """
    return Settings()

"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Aionic happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, auth_mode -> AUTH_MODE).

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Implements the DEBUG-conditional SECRET_KEY policy and refuses
      AUTH_MODE=bypass outside debug mode.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. JWT signing relies
  on key entropy -- a short key weakens every issued token.

  AUTH_MODE=bypass skips credential verification entirely and authenticates
  every request as the fixed mock user. It is only honoured together with
  DEBUG=true, so a stray env var cannot open a production deployment.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, cache/, components/, or milestone/.
"""

import logging
import secrets
from enum import Enum
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("aionic.config")


class AuthMode(str, Enum):
    """How the auth gate treats incoming requests."""

    real = "real"
    bypass = "bypass"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    # Empty string selects the SQLite file beside core/database.py.
    database_url: str = ""

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    auth_mode: AuthMode = AuthMode.real
    # Kept as a plain string: an unknown name is reported per request by the
    # auth gate, not at startup.
    default_auth_strategy: str = "jwt"
    jwt_audience: str = "aionic-client"
    jwt_issuer: str = "aionic-core"
    token_expire_seconds: int = 8 * 60 * 60
    self_registration_enabled: bool = True

    # First-run admin seed (both must be set)
    admin_email: str = ""
    admin_password: str = ""

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    cache_ttl_seconds: int = 600

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def validate_auth_mode(self) -> "Settings":
        """Only allow the authentication bypass in debug mode."""
        if self.auth_mode is AuthMode.bypass:
            if not self.debug:
                raise ValueError("AUTH_MODE=bypass requires DEBUG=true.")
            logger.warning("AUTH_MODE=bypass: every request is authenticated as the mock test user.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()

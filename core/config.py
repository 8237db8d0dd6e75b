"""
core/config.py -- TicketDesk settings, read once from the environment.

Every environment variable the service understands is a field on Settings.
Other modules call get_settings(); they never touch os.environ themselves.

  get_settings() is lru_cached, so the token signing secret, the database URL
  and the cookie policy are fixed for the lifetime of the process.

  Settings is a pydantic-settings model: SECRET_KEY fills secret_key,
  LOGIN_RATE_LIMIT fills login_rate_limit, and so on. A .env file in the
  working directory is read too. List fields (ALLOWED_HOSTS, CORS_ORIGINS)
  take JSON arrays.

  A missing SECRET_KEY stops the process at startup rather than failing each
  request. With DEBUG=true a throwaway key is generated instead.

SECRET_KEY must be at least 32 characters: it signs every HS256 session token.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("ticketdesk.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'ticketdesk_auth.db'}"


class Settings(BaseSettings):
    """TicketDesk settings. Every field except secret_key has a usable default."""

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
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Refuse to start without a usable signing key.

        With DEBUG=true a missing key is replaced by a random one, which logs
        everybody out on restart.
        """
        if not self.secret_key:
            if not self.debug:
                raise ValueError("SECRET_KEY must be set (or run with DEBUG=true for a throwaway key).")
            self.secret_key = secrets.token_hex(32)
            logger.warning("SECRET_KEY not set; generated a throwaway key for this process.")
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()

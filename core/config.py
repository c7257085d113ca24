"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the catalog API happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  Immutable after startup: model_config sets frozen=True, so the resolved
      settings cannot be mutated by any request handler. The lifespan in
      api/main.py builds the TokenCodec and stores from this object and keeps
      them on app.state; nothing reads configuration at import time.

  @model_validator: dev mode fills in a generated SECRET_KEY (mode="before",
      since the model is frozen); production mode refuses to start without
      one (mode="after").

  @field_validator: DATABASE_URL must be a SQLite URL. Listing SQL is bound
      with qmark placeholders through exec_driver_sql, which only the sqlite3
      driver understands.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. Token signing relies
  on key entropy -- a short key makes forged tokens practical.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, catalog/, or query/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("catalog.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'catalog.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (with DEBUG=true).

    Environment variable name mapping: field names are uppercased
    automatically. E.g. `secret_key` reads from SECRET_KEY.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    # SQLite only: listing queries use the sqlite3 driver's qmark (`?`)
    # placeholders and run through exec_driver_sql (core/database.py).
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # First admin (created at startup only while the users table is empty)
    # ------------------------------------------------------------------

    admin_username: str = ""
    admin_email: str = ""
    admin_password: str = ""

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("database_url")
    @classmethod
    def require_sqlite_url(cls, value: str) -> str:
        """Reject non-SQLite URLs at startup rather than on the first listing."""
        if not value.startswith("sqlite"):
            raise ValueError("DATABASE_URL must be a sqlite:/// URL.")
        return value

    @model_validator(mode="before")
    @classmethod
    def generate_dev_secret(cls, data):
        """Fill in a random SECRET_KEY in dev mode.

        Runs before field assignment because the model is frozen. Tokens
        signed with a generated key do not survive a restart, which only
        matters outside development.
        """
        if not isinstance(data, dict):
            return data
        debug = str(data.get("debug", data.get("DEBUG", ""))).lower() in ("1", "true", "yes", "on")
        if debug and not (data.get("secret_key") or data.get("SECRET_KEY")):
            data = dict(data)
            data["secret_key"] = secrets.token_hex(32)
            logger.warning("Using auto-generated SECRET_KEY. Tokens will not survive a restart.")
        return data

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Refuse to start without a strong SECRET_KEY outside dev mode."""
        if not self.secret_key:
            raise ValueError(
                "SECRET_KEY is required in production mode. "
                "Set SECRET_KEY in your environment or .env file. "
                "To run in development mode, set DEBUG=true."
            )
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

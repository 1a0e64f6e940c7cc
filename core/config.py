"""
core/config.py -- Centralized service configuration via pydantic-settings.

All environment variable reads for authstore happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from AUTHSTORE_* environment
      variables and an optional .env file. Type coercion and validation are
      built in (e.g. AUTHSTORE_MAX_SESSIONS=-1 fails at startup).

  @model_validator(mode="after"): compiles both credential patterns once so a
      typo in a regex stops the service at startup instead of at first login.

Embedding applications that construct stores directly do not need Settings at
all; StoreOptions (auth/options.py) is the store-level configuration.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import re
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authstore.config")


class Settings(BaseSettings):
    """Service settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.

    Environment variable name mapping: AUTHSTORE_ + uppercased field name.
    E.g. `debug` reads from AUTHSTORE_DEBUG, `max_sessions` from
    AUTHSTORE_MAX_SESSIONS.
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTHSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    # Debug echoes store errors in HTTP 500 responses; otherwise failed
    # requests get an empty body.
    debug: bool = False
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    backend: Literal["memory", "persistent"] = "persistent"
    database_url: str = "sqlite:///authstore.sqlite3"

    # ------------------------------------------------------------------
    # User policy
    # ------------------------------------------------------------------

    max_sessions: int = Field(default=0, ge=0)  # 0 = unlimited
    allow_password_change: bool = True
    # Empty string means "use the store default".
    username_pattern: str = ""
    password_pattern: str = ""

    # ------------------------------------------------------------------
    # HTTP listener
    # ------------------------------------------------------------------

    host: str = "127.0.0.1"
    port: int = 8080

    @model_validator(mode="after")
    def validate_patterns(self) -> "Settings":
        for name in ("username_pattern", "password_pattern"):
            value = getattr(self, name)
            if not value:
                continue
            try:
                re.compile(value)
            except re.error as exc:
                raise ValueError(f"{name.upper()} is not a valid regular expression: {exc}") from exc
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the service Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()

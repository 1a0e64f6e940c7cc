"""
auth/options.py -- Store configuration models.

StoreOptions replaces a positional list of optional overrides with named,
validated fields. Every field defaults independently when omitted or passed as
None, so callers can override one knob without restating the others:

    StoreOptions(user_settings=UserSettings(max_sessions=1))
    StoreOptions(username_pattern=r"[a-z]+", password_pattern=None)

Patterns are full-string regular expressions. Strings are compiled at
construction; an uncompilable pattern or a negative max_sessions raises
pydantic.ValidationError before any store exists.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_USERNAME_PATTERN = r"[a-zA-Z0-9+._]+"
# (?s) so a password containing a newline still counts as "any non-empty string"
DEFAULT_PASSWORD_PATTERN = r"(?s).+"

_DEFAULT_LOGGER_NAME = "authstore.store"


class UserSettings(BaseModel):
    """Per-user policy knobs."""

    model_config = ConfigDict(frozen=True)

    max_sessions: int = Field(default=0, ge=0)  # 0 = unlimited
    allow_password_change: bool = True


class StoreOptions(BaseModel):
    """Everything a store needs besides its backend."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    logger: logging.Logger = Field(default_factory=lambda: logging.getLogger(_DEFAULT_LOGGER_NAME))
    user_settings: UserSettings = Field(default_factory=UserSettings)
    username_pattern: re.Pattern = Field(default_factory=lambda: re.compile(DEFAULT_USERNAME_PATTERN))
    password_pattern: re.Pattern = Field(default_factory=lambda: re.compile(DEFAULT_PASSWORD_PATTERN))

    @field_validator("logger", mode="before")
    @classmethod
    def default_logger(cls, value: Any) -> Any:
        return logging.getLogger(_DEFAULT_LOGGER_NAME) if value is None else value

    @field_validator("user_settings", mode="before")
    @classmethod
    def default_user_settings(cls, value: Any) -> Any:
        return UserSettings() if value is None else value

    @field_validator("username_pattern", "password_pattern", mode="before")
    @classmethod
    def compile_pattern(cls, value: Any, info) -> Any:
        """Fill in the default for None and compile strings eagerly.

        A bad pattern surfaces as a ValidationError naming the field.
        """
        if value is None:
            default = DEFAULT_USERNAME_PATTERN if info.field_name == "username_pattern" else DEFAULT_PASSWORD_PATTERN
            return re.compile(default)
        if isinstance(value, str):
            try:
                return re.compile(value)
            except re.error as exc:
                raise ValueError(f"invalid regular expression {value!r}: {exc}") from exc
        return value

"""
auth/factory.py -- Build a store from service Settings.

The HTTP service and the CLI both go through open_store() so the environment
decides the backend in exactly one place.
"""

from __future__ import annotations

import logging

from auth.options import StoreOptions, UserSettings
from auth.persistent import PersistentUserStore
from auth.store import UserStore
from core.config import Settings


def store_options(settings: Settings, logger: logging.Logger | None = None) -> StoreOptions:
    """Translate flat Settings fields into a StoreOptions model.

    Empty pattern strings become None so StoreOptions applies its defaults.
    """
    return StoreOptions(
        logger=logger,
        user_settings=UserSettings(
            max_sessions=settings.max_sessions,
            allow_password_change=settings.allow_password_change,
        ),
        username_pattern=settings.username_pattern or None,
        password_pattern=settings.password_pattern or None,
    )


def open_store(settings: Settings, logger: logging.Logger | None = None) -> UserStore:
    options = store_options(settings, logger)
    if settings.backend == "memory":
        return UserStore(options)
    return PersistentUserStore(options, db_url=settings.database_url)

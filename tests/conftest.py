"""
tests/conftest.py -- Shared test fixtures for authstore.

This module provides:
  - store / single_session_store / frozen_password_store: in-memory stores
    with different user policies
  - db_url: a throwaway SQLite file URL for persistent-store tests
  - _patch_lifespan(): wires a test store into app.state, bypassing the real
    startup (which would open authstore.sqlite3 in the working directory)
  - api_client / quiet_client: TestClient with debug on / off

The HTTP fixtures are function-scoped: both clients drive the same module-level
FastAPI app, and app.state (store + debug flag) must belong to exactly one
client at a time.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import asynccontextmanager

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import USER
from auth.options import StoreOptions, UserSettings
from auth.store import UserStore

# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> UserStore:
    """In-memory store with default options (unlimited sessions, password changes allowed)."""
    return UserStore()


@pytest.fixture
def single_session_store() -> UserStore:
    return UserStore(StoreOptions(user_settings=UserSettings(max_sessions=1)))


@pytest.fixture
def frozen_password_store() -> UserStore:
    return UserStore(StoreOptions(user_settings=UserSettings(allow_password_change=False)))


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'users.sqlite3'}"


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, debug: bool):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.debug = debug
        yield
        user_store.close()

    return test_lifespan


def _client(debug: bool) -> Generator[tuple[TestClient, UserStore], None, None]:
    user_store = UserStore()
    user_store.add("testuser", "testpass123", USER)
    app.router.lifespan_context = _patch_lifespan(user_store, debug)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user_store


@pytest.fixture
def api_client() -> Generator[tuple[TestClient, UserStore], None, None]:
    """Yield (client, store) with debug on: errors come back as HTTP 500 + text.

    The store already holds testuser / testpass123 at access USER.
    """
    yield from _client(debug=True)


@pytest.fixture
def quiet_client() -> Generator[tuple[TestClient, UserStore], None, None]:
    """Yield (client, store) with debug off: errors come back as an empty 200."""
    yield from _client(debug=False)

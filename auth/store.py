"""
auth/store.py -- In-memory user registry, session table and user handles.

Pattern: Repository + Handle. UserStore owns every UserRecord and the session
table; callers receive UserHandle objects that point at a record and carry one
session identifier. Handles never trust a cached "logged in" flag: every
session-dependent operation re-checks the session table under the store lock.

Concurrency:
  One threading.Lock per store guards the registry and the session table
  together. Every mutation and every look-up-then-decide sequence runs while
  holding it. bcrypt work (hash and verify) runs outside the lock so one slow
  login does not stall the whole store; anything decided before the hash is
  re-checked once the lock is taken again.

Persistence hooks:
  _persist_insert / _persist_password / _persist_access / _persist_delete are
  no-ops here. auth/persistent.py overrides them to mirror user mutations into
  a SQL table. They are always called with the lock held. A failed statement
  propagates unchanged and any in-memory change made for it is rolled back.

Usage:
    store = UserStore()
    store.add("alice", "s3cret", USER)
    user = store.login("alice", "s3cret")
    user.check_access(USER)      # True
    user.log_out()
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import Any

from auth.errors import (
    AlreadyAuthenticated,
    AlreadyExists,
    InvalidCredentials,
    NotAllowed,
    NotFound,
    SessionLimitExceeded,
    StoreClosed,
    VerificationFailed,
)
from auth.models import DELETED, PUBLIC, USER, UserRecord
from auth.options import StoreOptions
from auth.tokens import hash_password, new_session_id, verify_password
from auth.validation import CredentialRules

# ---------------------------------------------------------------------------
# Registry and session table
#
# Plain containers with no locking of their own. Only UserStore touches them,
# and only while holding its lock.
# ---------------------------------------------------------------------------


class _Registry:
    def __init__(self) -> None:
        self._users: dict[str, UserRecord] = {}

    def get(self, username: str) -> UserRecord | None:
        return self._users.get(username)

    def insert(self, record: UserRecord) -> None:
        if record.username in self._users:
            raise AlreadyExists(f"user {record.username!r} already exists")
        self._users[record.username] = record

    def remove(self, record: UserRecord) -> None:
        if self._users.get(record.username) is record:
            del self._users[record.username]

    def usernames(self) -> list[str]:
        return sorted(self._users)

    def __len__(self) -> int:
        return len(self._users)


class _SessionTable:
    def __init__(self) -> None:
        self._sessions: dict[str, UserRecord] = {}

    def get(self, session_id: str) -> UserRecord | None:
        return self._sessions.get(session_id)

    def register(self, session_id: str, record: UserRecord) -> None:
        if session_id in self._sessions:
            raise AlreadyAuthenticated(f"session {session_id!r} is already registered")
        self._sessions[session_id] = record

    def revoke(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def sessions_of(self, record: UserRecord) -> list[str]:
        return [sid for sid, owner in self._sessions.items() if owner is record]


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class UserStore:
    """Thread-safe user registry plus session table for one auth domain."""

    def __init__(self, options: StoreOptions | None = None) -> None:
        self.options = options if options is not None else StoreOptions()
        self.logger = self.options.logger
        self._rules = CredentialRules(self.options.username_pattern, self.options.password_pattern)
        self._lock = threading.Lock()
        self._registry = _Registry()
        self._sessions = _SessionTable()
        self._closed = False

    # ------------------------------------------------------------------
    # Persistence hooks (lock held)
    # ------------------------------------------------------------------

    def _persist_insert(self, record: UserRecord) -> None:
        pass

    def _persist_password(self, record: UserRecord, hashed: str) -> None:
        pass

    def _persist_access(self, record: UserRecord, access: int) -> None:
        pass

    def _persist_delete(self, record: UserRecord) -> None:
        pass

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def add(self, username: str, password: str, access: int = USER) -> None:
        """Register a new user.

        Raises InvalidCredentials if either value fails its pattern (the
        registry is not consulted), AlreadyExists for a taken username and
        HashingFailure if bcrypt rejects the password.
        """
        self._check_open()
        if not self._rules.validate(username, password):
            raise InvalidCredentials()

        with self._lock:
            taken = self._registry.get(username) is not None
        if taken:
            self.logger.info("add(): user %r already exists", username)
            raise AlreadyExists(f"user {username!r} already exists")

        record = UserRecord(username=username, password=hash_password(password), access=access)
        with self._lock:
            try:
                self._registry.insert(record)
            except AlreadyExists:
                # Lost a race with a concurrent add() while hashing.
                self.logger.info("add(): user %r already exists", username)
                raise
            try:
                self._persist_insert(record)
            except Exception:
                self._registry.remove(record)
                raise

    def login(self, username: str, password: str, session_id: str | None = None) -> UserHandle:
        """Authenticate and return a handle holding a freshly registered session.

        session_id lets the host application choose the identifier (for
        example one it already uses as a cookie value); a uuid4 string is
        generated otherwise.
        """
        self._check_open()
        if not self._rules.validate(username, password):
            raise InvalidCredentials()

        with self._lock:
            record = self._registry.get(username)
        if record is None:
            self.logger.info("login(): user %r not found", username)
            raise NotFound(f"user {username!r} not found")
        if not verify_password(password, record.password):
            raise VerificationFailed()

        sid = session_id or new_session_id()
        with self._lock:
            if self._registry.get(username) is not record:
                # Deleted while the password was being verified.
                self.logger.info("login(): user %r not found", username)
                raise NotFound(f"user {username!r} not found")
            limit = self.options.user_settings.max_sessions
            if limit and len(self._sessions.sessions_of(record)) >= limit:
                raise SessionLimitExceeded()
            self._sessions.register(sid, record)
            record.session = sid
        return UserHandle(self, record, sid)

    def user_from_username(self, username: str) -> UserHandle:
        """Return a handle for username carrying the user's latest session."""
        self._check_open()
        with self._lock:
            record = self._registry.get(username)
            session = record.session if record is not None else ""
        if record is None:
            self.logger.info("user_from_username(): user %r not found", username)
            raise NotFound(f"user {username!r} not found")
        return UserHandle(self, record, session)

    def user_from_id(self, session_id: str) -> UserHandle:
        """Return a handle for the user owning session_id."""
        self._check_open()
        with self._lock:
            record = self._sessions.get(session_id)
        if record is None:
            self.logger.info("user_from_id(): session %r not found", session_id)
            raise NotFound(f"session {session_id!r} not found")
        return UserHandle(self, record, session_id)

    def remove_sessions(self, session_ids: Iterable[str]) -> None:
        """Revoke every listed session. Unknown identifiers are ignored."""
        with self._lock:
            for sid in session_ids:
                self._sessions.revoke(sid)

    def sessions_of(self, username: str) -> list[str]:
        """Return the identifiers currently bound to username ([] if unknown)."""
        with self._lock:
            record = self._registry.get(username)
            return self._sessions.sessions_of(record) if record is not None else []

    def usernames(self) -> list[str]:
        with self._lock:
            return self._registry.usernames()

    def __len__(self) -> int:
        with self._lock:
            return len(self._registry)

    def close(self) -> None:
        self._closed = True

    # ------------------------------------------------------------------
    # Internals shared with UserHandle
    # ------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._closed:
            raise StoreClosed()

    def _is_live(self, record: UserRecord, session_id: str) -> bool:
        """Session validity check. Caller must hold the lock.

        Live means: the identifier is among the record's bound sessions, the
        table resolves it back to this exact record, and the record is still
        the one registered under its username.
        """
        if not session_id:
            return False
        if self._registry.get(record.username) is not record:
            return False
        if session_id not in self._sessions.sessions_of(record):
            return False
        return self._sessions.get(session_id) is record

    def _session_valid(self, record: UserRecord, session_id: str) -> bool:
        with self._lock:
            return self._is_live(record, session_id)


# ---------------------------------------------------------------------------
# Handle
# ---------------------------------------------------------------------------


class UserHandle:
    """A caller's reference to one user and one of that user's sessions.

    Safe to keep across calls. The session it carries may go stale (logout,
    logout elsewhere, deletion); reading .session clears it when that happens.
    After delete() every handle to the user is inert: empty username, access
    PUBLIC (-1), variables None, no session.
    """

    def __init__(self, store: UserStore, record: UserRecord, session: str = "") -> None:
        self._store = store
        self._record = record
        self._session = session

    def __repr__(self) -> str:
        return f"UserHandle(username={self._record.username!r}, access={self._record.access})"

    @property
    def username(self) -> str:
        return self._record.username

    @property
    def access(self) -> int:
        return self._record.access

    @property
    def variables(self) -> dict[str, Any] | None:
        return self._record.variables

    @property
    def session(self) -> str:
        """The live session identifier, or "" once it is no longer valid."""
        if not self._store._session_valid(self._record, self._session):
            self._session = ""
        return self._session

    def change_password(self, password: str) -> None:
        """Replace the password. Requires a live session on this handle.

        Raises NotAllowed without a live session or when password changes are
        disabled, InvalidCredentials if the new password fails its pattern.
        """
        store = self._store
        if not store._session_valid(self._record, self._session):
            raise NotAllowed("a valid session is required to change the password")
        if not store.options.user_settings.allow_password_change:
            raise NotAllowed("password changes are disabled")
        if not store._rules.validate(self._record.username, password):
            raise InvalidCredentials()

        hashed = hash_password(password)
        with store._lock:
            if not store._is_live(self._record, self._session):
                raise NotAllowed("a valid session is required to change the password")
            store._persist_password(self._record, hashed)
            self._record.password = hashed

    def change_access(self, access: int) -> None:
        """Overwrite the access level. No checks: the host application gates this."""
        store = self._store
        with store._lock:
            if store._registry.get(self._record.username) is not self._record:
                return
            store._persist_access(self._record, access)
            self._record.access = access

    def log_out(self) -> None:
        """Revoke this handle's session only."""
        store = self._store
        with store._lock:
            if self._session and store._sessions.get(self._session) is self._record:
                store._sessions.revoke(self._session)

    def log_out_fully(self) -> None:
        """Revoke every session the user holds, from any handle."""
        store = self._store
        with store._lock:
            for sid in store._sessions.sessions_of(self._record):
                store._sessions.revoke(sid)

    def delete(self) -> None:
        """Remove the user and all its sessions, then scrub the record."""
        store = self._store
        record = self._record
        with store._lock:
            if store._registry.get(record.username) is record:
                store._persist_delete(record)
                for sid in store._sessions.sessions_of(record):
                    store._sessions.revoke(sid)
                store._registry.remove(record)
            record.username = ""
            record.password = ""
            record.session = ""
            record.access = PUBLIC
            record.variables = None
        self._session = ""

    def check_access(self, level: int) -> bool:
        """Return True if the user may act at the given access level.

        A DELETED user never passes; a PUBLIC request always passes otherwise.
        Any other level needs access <= level and a live session.
        """
        if self._record.access == DELETED:
            return False
        if level == PUBLIC:
            return True
        if self._record.access > level:
            return False
        return self._store._session_valid(self._record, self._session)

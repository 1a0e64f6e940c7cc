"""Tests for auth/persistent.py -- PersistentUserStore and UserTable.

Every test uses a fresh SQLite file under tmp_path so reopening the same URL
exercises start-up hydration.

Covers:
- same session and validation rules as the in-memory store
- users, password changes and access changes survive a reopen
- delete() removes the row
- sessions and variables are memory-only
- only bcrypt hashes reach the table
- a closed store refuses further writes, from the store and from handles
- a failed SQL statement propagates and leaves memory unchanged
- start-up logging goes through the configured logger
- in-memory SQLite URLs share one connection (StaticPool)
"""

from __future__ import annotations

import logging

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from auth.errors import AlreadyExists, InvalidCredentials, NotAllowed, NotFound, StoreClosed, VerificationFailed
from auth.models import ADMIN, PUBLIC, USER, UserRecord
from auth.options import StoreOptions, UserSettings
from auth.persistent import PersistentUserStore, UserTable


@pytest.fixture
def pstore(db_url: str):
    s = PersistentUserStore(db_url=db_url)
    yield s
    s.close()


def _reopen(db_url: str, **options) -> PersistentUserStore:
    return PersistentUserStore(StoreOptions(**options) if options else None, db_url=db_url)


class TestPersistentFeatures:
    def test_same_rules_as_memory_store(self, pstore: PersistentUserStore) -> None:
        pstore.add("user", "test", USER)
        with pytest.raises(InvalidCredentials):
            pstore.add("@u ser", "test", USER)
        with pytest.raises(InvalidCredentials):
            pstore.add("user", "", USER)
        with pytest.raises(AlreadyExists):
            pstore.add("user", "other", USER)

        user = pstore.login("user", "test")
        user.change_password("test1")
        assert not user.check_access(ADMIN)

        user.log_out()
        with pytest.raises(NotAllowed):
            user.change_password("test2")

        user = pstore.login("user", "test1")
        user.variables["test"] = "hello"
        user.log_out_fully()
        with pytest.raises(NotAllowed):
            user.change_password("test2")

    def test_password_change_disabled(self, db_url: str) -> None:
        store = _reopen(db_url, user_settings=UserSettings(allow_password_change=False))
        store.add("test", "test", PUBLIC)
        user = store.login("test", "test")
        with pytest.raises(NotAllowed):
            user.change_password("test2")
        store.close()


class TestDurability:
    def test_users_survive_reopen(self, db_url: str) -> None:
        first = _reopen(db_url)
        first.add("alice", "pw", ADMIN)
        first.close()

        second = _reopen(db_url)
        user = second.login("alice", "pw")
        assert user.access == ADMIN
        assert user.check_access(ADMIN)
        second.close()

    def test_password_change_survives_reopen(self, db_url: str) -> None:
        first = _reopen(db_url)
        first.add("alice", "old")
        first.login("alice", "old").change_password("new")
        first.close()

        second = _reopen(db_url)
        second.login("alice", "new")
        with pytest.raises(VerificationFailed):
            second.login("alice", "old")
        second.close()

    def test_access_change_survives_reopen(self, db_url: str) -> None:
        first = _reopen(db_url)
        first.add("alice", "pw", USER)
        first.user_from_username("alice").change_access(ADMIN)
        first.close()

        second = _reopen(db_url)
        assert second.user_from_username("alice").access == ADMIN
        second.close()

    def test_delete_removes_row(self, db_url: str) -> None:
        first = _reopen(db_url)
        first.add("alice", "pw")
        first.add("bob", "pw")
        first.login("alice", "pw").delete()
        first.close()

        second = _reopen(db_url)
        assert second.usernames() == ["bob"]
        with pytest.raises(NotFound):
            second.login("alice", "pw")
        second.close()

    def test_sessions_and_variables_are_not_persisted(self, db_url: str) -> None:
        first = _reopen(db_url)
        first.add("alice", "pw")
        user = first.login("alice", "pw", session_id="sid-1")
        user.variables["cart"] = [1, 2]
        first.close()

        second = _reopen(db_url)
        with pytest.raises(NotFound):
            second.user_from_id("sid-1")
        assert second.user_from_username("alice").variables == {}
        second.close()

    def test_only_hashes_are_stored(self, pstore: PersistentUserStore) -> None:
        pstore.add("alice", "plaintext")
        with pstore._table.engine.connect() as conn:
            stored = conn.execute(text("SELECT password FROM users WHERE username = 'alice'")).scalar()
        assert stored != "plaintext"
        assert stored.startswith("$2")


def test_closed_store_refuses_writes(db_url: str) -> None:
    store = _reopen(db_url)
    store.add("alice", "pw")
    user = store.login("alice", "pw")
    store.close()
    with pytest.raises(StoreClosed):
        store.add("bob", "pw")
    with pytest.raises(StoreClosed):
        user.change_access(ADMIN)
    with pytest.raises(StoreClosed):
        user.delete()
    assert user.access == USER
    assert user.username == "alice"
    store.close()


def test_in_memory_url(tmp_path) -> None:
    store = PersistentUserStore(db_url="sqlite://")
    store.add("alice", "pw")
    assert store._table.load_all()[0].username == "alice"
    store.close()


def test_user_table_roundtrip(db_url: str) -> None:
    """UserTable on its own: update/delete report whether a row matched."""
    table = UserTable(db_url)
    table.insert(UserRecord(username="alice", password="$2b$hash", access=USER))
    assert table.update_password("alice", "$2b$other")
    assert table.update_access("alice", ADMIN)
    assert not table.update_password("ghost", "$2b$x")

    [record] = table.load_all()
    assert (record.username, record.password, record.access) == ("alice", "$2b$other", ADMIN)
    assert table.delete("alice")
    assert not table.delete("alice")
    table.close()


def test_start_up_logs_through_configured_logger(db_url: str, caplog) -> None:
    custom = logging.getLogger("authstore.test.hydrate")
    with caplog.at_level(logging.INFO, logger="authstore.test.hydrate"):
        store = _reopen(db_url, logger=custom)
    store.close()
    [entry] = [r for r in caplog.records if r.getMessage().startswith("Loaded ")]
    assert entry.name == "authstore.test.hydrate"
    assert entry.getMessage() == f"Loaded 0 user(s) from {db_url}"


# ---------------------------------------------------------------------------
# Backend failures
# ---------------------------------------------------------------------------


def _disk_error(*args, **kwargs):
    raise OperationalError("UPDATE users", {}, Exception("disk I/O error"))


class TestBackendFailures:
    def test_failed_insert_leaves_user_unregistered(self, pstore: PersistentUserStore, monkeypatch) -> None:
        monkeypatch.setattr(pstore._table, "insert", _disk_error)
        with pytest.raises(OperationalError):
            pstore.add("alice", "pw")
        assert pstore.usernames() == []
        with pytest.raises(NotFound):
            pstore.login("alice", "pw")

        monkeypatch.undo()
        pstore.add("alice", "pw")
        assert pstore.usernames() == ["alice"]

    def test_failed_password_update_keeps_old_hash(self, pstore: PersistentUserStore, monkeypatch) -> None:
        pstore.add("alice", "pw")
        user = pstore.login("alice", "pw")
        monkeypatch.setattr(pstore._table, "update_password", _disk_error)
        with pytest.raises(OperationalError):
            user.change_password("new")

        assert user.session != ""
        pstore.login("alice", "pw")
        with pytest.raises(VerificationFailed):
            pstore.login("alice", "new")

    def test_failed_access_update_keeps_level(self, pstore: PersistentUserStore, monkeypatch) -> None:
        pstore.add("alice", "pw", USER)
        user = pstore.login("alice", "pw")
        monkeypatch.setattr(pstore._table, "update_access", _disk_error)
        with pytest.raises(OperationalError):
            user.change_access(ADMIN)
        assert user.access == USER
        assert not user.check_access(ADMIN)

    def test_failed_delete_keeps_user_and_sessions(self, pstore: PersistentUserStore, monkeypatch) -> None:
        pstore.add("alice", "pw")
        user = pstore.login("alice", "pw")
        other = pstore.login("alice", "pw")
        before = pstore.sessions_of("alice")
        monkeypatch.setattr(pstore._table, "delete", _disk_error)
        with pytest.raises(OperationalError):
            user.delete()

        assert pstore.usernames() == ["alice"]
        assert user.username == "alice"
        assert user.session != ""
        assert other.session != ""
        assert pstore.sessions_of("alice") == before
        assert [r.username for r in pstore._table.load_all()] == ["alice"]

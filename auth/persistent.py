"""
auth/persistent.py -- SQLAlchemy Core persistence for the user registry.

Pattern: Repository + Data Mapper. UserTable is the repository over the
`users` table; _row_to_record is the mapper. PersistentUserStore plugs the
repository into UserStore's persistence hooks, so session and validation
behaviour is exactly that of the in-memory store.

What is stored: username, bcrypt hash, access level. Sessions and per-user
variables are memory-only and are gone after a restart.

Start-up: the table is created if absent, then every row is loaded into the
in-memory registry. After that, reads never touch the database; writes go to
the database first (inside the store lock) and to memory second.

Security:
  All queries use bound parameters. No f-strings in SQL.

DB path: authstore.sqlite3 in the working directory unless a URL is given.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from auth.errors import AlreadyExists
from auth.models import UserRecord
from auth.options import StoreOptions
from auth.store import UserStore

DEFAULT_DB_URL = "sqlite:///authstore.sqlite3"

_IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("username", String(255), nullable=False, unique=True),
    Column("password", Text, nullable=False),  # bcrypt hash
    Column("access", Integer, nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserTable:
    """Repository for persisted user rows.

    Usage:
        table = UserTable("sqlite:///users.db")
        table.insert(record)
        records = table.load_all()
        table.close()
    """

    def __init__(self, db_url: str = DEFAULT_DB_URL) -> None:
        engine_args: dict = {}
        if db_url.startswith("sqlite"):
            engine_args["connect_args"] = {"check_same_thread": False}
        if db_url in _IN_MEMORY_URLS:
            # One shared connection, otherwise every pooled connection would
            # open its own empty database.
            engine_args["poolclass"] = StaticPool
        self.engine: Engine = create_engine(db_url, **engine_args)
        if db_url.startswith("sqlite") and db_url not in _IN_MEMORY_URLS:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def load_all(self) -> list[UserRecord]:
        """Return every stored user ordered by username."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.username)).fetchall()
        return [_row_to_record(r) for r in rows]

    def insert(self, record: UserRecord) -> None:
        """Insert a user row.

        Raises sqlalchemy.exc.IntegrityError if the username is already
        stored, which only happens when another process wrote the same row.
        """
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    username=record.username,
                    password=record.password,
                    access=record.access,
                )
            )
            conn.commit()

    def update_password(self, username: str, hashed: str) -> bool:
        """Overwrite the stored hash. Returns True if a row was updated."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.username == username).values(password=hashed))
            conn.commit()
        return result.rowcount > 0

    def update_access(self, username: str, access: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.username == username).values(access=access))
            conn.commit()
        return result.rowcount > 0

    def delete(self, username: str) -> bool:
        """Delete the row for username. Returns True if a row was removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.username == username))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class PersistentUserStore(UserStore):
    """UserStore whose users survive restarts in a SQL table.

    Usage:
        store = PersistentUserStore(db_url="sqlite:///users.db")
        store.add("alice", "s3cret")
        store.close()
        PersistentUserStore(db_url="sqlite:///users.db").login("alice", "s3cret")
    """

    def __init__(self, options: StoreOptions | None = None, db_url: str = DEFAULT_DB_URL) -> None:
        super().__init__(options)
        self.db_url = db_url
        self._table = UserTable(db_url)
        self._hydrate()

    def _hydrate(self) -> None:
        loaded = 0
        with self._lock:
            for record in self._table.load_all():
                try:
                    self._registry.insert(record)
                except AlreadyExists:
                    self.logger.warning("skipping duplicate stored user %r", record.username)
                    continue
                loaded += 1
        self.logger.info("Loaded %d user(s) from %s", loaded, self.db_url)

    def _persist_insert(self, record: UserRecord) -> None:
        self._check_open()
        self._table.insert(record)

    def _persist_password(self, record: UserRecord, hashed: str) -> None:
        self._check_open()
        self._table.update_password(record.username, hashed)

    def _persist_access(self, record: UserRecord, access: int) -> None:
        self._check_open()
        self._table.update_access(record.username, access)

    def _persist_delete(self, record: UserRecord) -> None:
        self._check_open()
        self._table.delete(record.username)

    def close(self) -> None:
        if self._closed:
            return
        super().close()
        self._table.close()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_record(row) -> UserRecord:
    return UserRecord(
        username=row.username,
        password=row.password,
        access=row.access,
    )

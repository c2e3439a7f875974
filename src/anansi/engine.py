"""Embedded transactional key-value engine with nested buckets.

Buckets are namespaces that hold byte-string key/value pairs and other
buckets.  Storage is a single SQLite file in WAL mode:

- ``buckets``: the namespace tree (``parent_id = 0`` marks a top-level bucket)
- ``pairs``: key/value rows keyed by ``(bucket_id, key)``

Keys are stored as BLOBs so cursor order is lexicographic byte order.

Concurrency: exactly one write transaction is in flight at a time across
the whole store (a process-wide lock plus ``BEGIN IMMEDIATE``), while read
transactions each run on their own connection and see the snapshot that was
current when they began.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0

_TOP_LEVEL = 0

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS buckets (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        parent_id INTEGER NOT NULL,
        name BLOB NOT NULL,
        UNIQUE (parent_id, name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS pairs (
        bucket_id INTEGER NOT NULL REFERENCES buckets (id) ON DELETE CASCADE,
        key BLOB NOT NULL,
        value BLOB NOT NULL,
        PRIMARY KEY (bucket_id, key)
    ) WITHOUT ROWID
    """,
)


class EngineError(Exception):
    """Base error for engine operations."""


class EngineOpenError(EngineError):
    """The database file could not be opened or initialized."""


class EngineClosed(EngineError):
    """The engine was used after close()."""


class TxNotWritable(EngineError):
    """A mutation was attempted inside a read-only transaction."""


class TxClosed(EngineError):
    """A transaction was used after it committed or rolled back."""


def _to_bytes(value: bytes | str) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


class Bucket:
    """A namespace inside a transaction.

    Handles are only valid for the lifetime of the transaction that
    produced them.
    """

    def __init__(self, tx: Tx, bucket_id: int, name: bytes) -> None:
        self._tx = tx
        self._id = bucket_id
        self.name = name

    def __repr__(self) -> str:
        return f"Bucket({self.name!r})"

    # ── Nested buckets ───────────────────────────────────────────

    def bucket(self, name: bytes | str) -> Bucket | None:
        """Return the child bucket ``name``, or None if it does not exist."""
        return self._tx._lookup(self._id, _to_bytes(name))

    def create_bucket_if_not_exists(self, name: bytes | str) -> Bucket:
        """Return the child bucket ``name``, creating it if needed."""
        return self._tx._create(self._id, _to_bytes(name))

    # ── Key/value access ─────────────────────────────────────────

    def get(self, key: bytes | str) -> bytes | None:
        """Return the value at ``key``, or None if the key is absent."""
        row = self._tx._execute(
            "SELECT value FROM pairs WHERE bucket_id = ? AND key = ?",
            (self._id, _to_bytes(key)),
        ).fetchone()
        if row is None:
            return None
        return bytes(row[0])

    def put(self, key: bytes | str, value: bytes | str) -> None:
        """Write ``value`` at ``key``, replacing any existing value."""
        self._tx._check_writable()
        raw_key = _to_bytes(key)
        if not raw_key:
            raise EngineError("key required")
        self._tx._execute(
            "INSERT INTO pairs (bucket_id, key, value) VALUES (?, ?, ?) "
            "ON CONFLICT (bucket_id, key) DO UPDATE SET value = excluded.value",
            (self._id, raw_key, _to_bytes(value)),
        )

    def delete(self, key: bytes | str) -> None:
        """Remove ``key``.  Removing an absent key is a no-op."""
        self._tx._check_writable()
        self._tx._execute(
            "DELETE FROM pairs WHERE bucket_id = ? AND key = ?",
            (self._id, _to_bytes(key)),
        )

    def cursor(self) -> Iterator[tuple[bytes, bytes]]:
        """Iterate over ``(key, value)`` pairs in byte order of the key."""
        rows = self._tx._execute(
            "SELECT key, value FROM pairs WHERE bucket_id = ? ORDER BY key",
            (self._id,),
        )
        for key, value in rows:
            yield bytes(key), bytes(value)

    def count(self) -> int:
        """Number of keys directly inside this bucket."""
        row = self._tx._execute(
            "SELECT count(*) FROM pairs WHERE bucket_id = ?", (self._id,)
        ).fetchone()
        return int(row[0])


class Tx:
    """A single read or write transaction.

    Obtained from ``Engine.view()`` or ``Engine.update()``; never constructed
    directly by callers.
    """

    def __init__(self, conn: sqlite3.Connection, writable: bool) -> None:
        self._conn = conn
        self._writable = writable
        self._closed = False

    @property
    def writable(self) -> bool:
        return self._writable

    def bucket(self, name: bytes | str) -> Bucket | None:
        """Return the top-level bucket ``name``, or None if it does not exist."""
        return self._lookup(_TOP_LEVEL, _to_bytes(name))

    def create_bucket_if_not_exists(self, name: bytes | str) -> Bucket:
        """Return the top-level bucket ``name``, creating it if needed."""
        return self._create(_TOP_LEVEL, _to_bytes(name))

    # ── Internals ────────────────────────────────────────────────

    def _execute(self, sql: str, params: tuple[object, ...] = ()) -> sqlite3.Cursor:
        if self._closed:
            raise TxClosed("transaction is closed")
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as exc:
            raise EngineError(str(exc)) from exc

    def _check_writable(self) -> None:
        if not self._writable:
            raise TxNotWritable("transaction is read-only")

    def _lookup(self, parent_id: int, name: bytes) -> Bucket | None:
        row = self._execute(
            "SELECT id FROM buckets WHERE parent_id = ? AND name = ?",
            (parent_id, name),
        ).fetchone()
        if row is None:
            return None
        return Bucket(self, int(row[0]), name)

    def _create(self, parent_id: int, name: bytes) -> Bucket:
        self._check_writable()
        if not name:
            raise EngineError("bucket name required")
        existing = self._lookup(parent_id, name)
        if existing is not None:
            return existing
        cur = self._execute(
            "INSERT INTO buckets (parent_id, name) VALUES (?, ?)",
            (parent_id, name),
        )
        logger.debug("Created bucket %r under %d", name, parent_id)
        return Bucket(self, int(cur.lastrowid), name)


class Engine:
    """Handle to an open store file.

    Safe to share between threads: every transaction gets its own
    connection, and write transactions are serialized.
    """

    def __init__(self, path: Path, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._path = path
        self._timeout = timeout
        self._write_lock = threading.Lock()
        self._closed = False

    @classmethod
    def open(cls, path: str | Path, *, timeout: float = DEFAULT_TIMEOUT) -> Engine:
        """Open (creating if needed) the store at ``path``.

        Raises:
            EngineOpenError: The file cannot be opened, is not a database,
                or the schema cannot be created.
        """
        engine = cls(Path(path), timeout=timeout)
        try:
            engine.path.parent.mkdir(parents=True, exist_ok=True)
            conn = engine._connect()
        except (OSError, sqlite3.Error) as exc:
            raise EngineOpenError(f"could not open {path}: {exc}") from exc
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("BEGIN IMMEDIATE")
            for statement in _SCHEMA:
                conn.execute(statement)
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            raise EngineOpenError(f"could not open {path}: {exc}") from exc
        finally:
            conn.close()
        logger.debug("Opened store at %s", path)
        return engine

    @property
    def path(self) -> Path:
        return self._path

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Mark the engine closed.  Idempotent."""
        if not self._closed:
            self._closed = True
            logger.debug("Closed store at %s", self._path)

    def __enter__(self) -> Engine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"Engine({str(self._path)!r}, {state})"

    # ── Transactions ─────────────────────────────────────────────

    @contextmanager
    def view(self) -> Iterator[Tx]:
        """Run a read-only transaction on a consistent snapshot."""
        conn = self._begin("BEGIN")
        tx = Tx(conn, writable=False)
        try:
            # The snapshot is pinned by the first read, not by BEGIN.
            tx._execute("SELECT count(*) FROM buckets").fetchone()
            yield tx
        finally:
            tx._closed = True
            self._finish(conn, "ROLLBACK")

    @contextmanager
    def update(self) -> Iterator[Tx]:
        """Run a write transaction.

        Commits when the block exits cleanly and rolls back if it raises.
        Only one write transaction runs at a time.
        """
        with self._write_lock:
            conn = self._begin("BEGIN IMMEDIATE")
            tx = Tx(conn, writable=True)
            try:
                yield tx
            except BaseException:
                tx._closed = True
                self._finish(conn, "ROLLBACK")
                raise
            tx._closed = True
            self._finish(conn, "COMMIT")

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self._path),
            timeout=self._timeout,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _begin(self, statement: str) -> sqlite3.Connection:
        if self._closed:
            raise EngineClosed(f"store {self._path} is closed")
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise EngineError(str(exc)) from exc
        try:
            conn.execute(statement)
        except sqlite3.Error as exc:
            conn.close()
            raise EngineError(str(exc)) from exc
        return conn

    @staticmethod
    def _finish(conn: sqlite3.Connection, statement: str) -> None:
        try:
            if conn.in_transaction:
                conn.execute(statement)
        except sqlite3.Error as exc:
            raise EngineError(str(exc)) from exc
        finally:
            conn.close()

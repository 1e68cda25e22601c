"""SQLite database shared by the service registry and the result store.

Both tables live in one file so deleting a service cascades to its
probe history. Connections are opened per thread (WAL mode) so concurrent
requests served from the FastAPI threadpool never share a cursor.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from healthwatch.config import settings
from healthwatch.errors import StoreError

logger = logging.getLogger(__name__)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS services (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        url TEXT NOT NULL,
        check_interval INTEGER NOT NULL DEFAULT 300,
        expected_status INTEGER NOT NULL DEFAULT 200,
        timeout INTEGER NOT NULL DEFAULT 5000,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS probe_results (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        service_id INTEGER NOT NULL REFERENCES services (id) ON DELETE CASCADE,
        status_code INTEGER,
        response_time REAL NOT NULL,
        is_healthy INTEGER NOT NULL,
        error_message TEXT,
        checked_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_results_service
        ON probe_results (service_id, checked_at DESC);

    CREATE INDEX IF NOT EXISTS idx_results_checked_at
        ON probe_results (checked_at);
"""


def utc_now() -> str:
    """Current UTC time as a fixed-width ISO-8601 string (sorts lexically)."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class Database:
    """Per-thread SQLite connections to a single database file."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        self._db_path = Path(db_path or settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._conns: list[sqlite3.Connection] = []
        self._conns_lock = threading.Lock()
        self._generation = 0
        self._init_db()

    @property
    def path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def connection(self) -> sqlite3.Connection:
        """Return this thread's connection, opening one if needed."""
        if getattr(self._local, "generation", None) != self._generation:
            self._local.conn = None
        conn = getattr(self._local, "conn", None)
        if conn is None:
            try:
                conn = self._connect()
            except sqlite3.Error as e:
                raise StoreError(f"Cannot open database {self._db_path}: {e}") from e
            self._local.conn = conn
            self._local.generation = self._generation
            with self._conns_lock:
                self._conns.append(conn)
        return conn

    @contextmanager
    def session(self) -> Iterator[sqlite3.Connection]:
        """Transaction scope: commit on success, roll back and raise StoreError on failure."""
        conn = self.connection()
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            logger.error("Database error on %s: %s", self._db_path, e)
            raise StoreError(f"Database error: {e}") from e

    def _init_db(self) -> None:
        with self.session() as conn:
            conn.executescript(SCHEMA)

    def ping(self) -> bool:
        try:
            with self.session() as conn:
                conn.execute("SELECT 1").fetchone()
            return True
        except StoreError:
            return False

    def close(self) -> None:
        """Close every connection; later calls transparently reconnect."""
        with self._conns_lock:
            for conn in self._conns:
                conn.close()
            self._conns.clear()
            self._generation += 1

"""SQLite connection for one docent knowledge-base file."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

from docent.db.migrations import run_migrations

# Applied to every new connection, in order.
_PRAGMAS = (
    "PRAGMA foreign_keys = ON",  # chunks and messages cascade with their parent row
    "PRAGMA journal_mode = WAL",
    "PRAGMA busy_timeout = 5000",  # parallel ingest runs wait for the write lock
)


class Database:
    """Opens connections to a knowledge-base file.

    Every connection returns ``sqlite3.Row`` rows and has sqlite-vec loaded,
    so ``vec0`` tables and ``vec_*`` functions are available.

    Usage:
        conn = Database(".docent.db").connect(migrate=True)

        with Database(path) as conn:
            ...
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def connect(self, migrate: bool = False) -> sqlite3.Connection:
        """Open a connection; with *migrate*, bring the schema up to date first.

        The file (and, with *migrate*, its parent directory) is created if missing.
        """
        if migrate:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)
        for pragma in _PRAGMAS:
            conn.execute(pragma)
        if migrate:
            run_migrations(conn)
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

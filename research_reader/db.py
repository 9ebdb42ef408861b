from __future__ import annotations

import sqlite3
from pathlib import Path

from .errors import StoreFailure

DB_FILENAME = "data.sqlite"
SCHEMA_VERSION = 1


def connect(db_path: Path | str, check_same_thread: bool = True) -> sqlite3.Connection:
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, check_same_thread=check_same_thread)
    conn.row_factory = sqlite3.Row
    try:
        try:
            conn.execute("PRAGMA journal_mode = WAL")
        except sqlite3.OperationalError:
            conn.execute("PRAGMA journal_mode = DELETE")
        conn.execute("PRAGMA synchronous = NORMAL")
    except sqlite3.Error:
        conn.close()
        raise
    return conn


def schema_user_version(conn: sqlite3.Connection) -> int:
    row = conn.execute("PRAGMA user_version").fetchone()
    return int(row[0]) if row else 0


def initialize_schema(conn: sqlite3.Connection) -> None:
    version = schema_user_version(conn)
    if version > SCHEMA_VERSION:
        raise StoreFailure(
            f"Database schema version {version} is newer than supported version {SCHEMA_VERSION}"
        )
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS metadata (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS annotations (
            id TEXT PRIMARY KEY,
            type TEXT NOT NULL CHECK(type IN ('highlight', 'note', 'bookmark')),
            page_number INTEGER NOT NULL,
            color TEXT,
            content TEXT,
            position_data TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_annotations_page ON annotations(page_number);
        CREATE INDEX IF NOT EXISTS idx_annotations_type ON annotations(type);
        """
    )
    if version != SCHEMA_VERSION:
        conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
    conn.commit()


def checkpoint(conn: sqlite3.Connection) -> tuple[int, int, int]:
    """Merge the write-ahead log into the main database file.

    Returns the ``(busy, log_frames, checkpointed_frames)`` triple SQLite reports.
    A non-zero ``busy`` means the log could not be fully merged.
    """
    row = conn.execute("PRAGMA wal_checkpoint(TRUNCATE)").fetchone()
    if row is None:
        return 0, 0, 0
    return int(row[0]), int(row[1]), int(row[2])

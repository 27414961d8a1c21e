"""Database connection and blob storage."""

import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Protocol

DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "home-habits" / "habits.db"

SCHEMA = """
-- Engine state blobs (settings, patterns, logs, dismissed suggestions)
CREATE TABLE IF NOT EXISTS blobs (
    key TEXT PRIMARY KEY,
    data BLOB NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class BlobStore(Protocol):
    """Key -> bytes storage used to persist engine state."""

    def load(self, key: str) -> bytes | None: ...

    def save(self, key: str, data: bytes) -> None: ...


class MemoryBlobStore:
    """In-process blob store."""

    def __init__(self, blobs: dict[str, bytes] | None = None):
        self.blobs: dict[str, bytes] = dict(blobs or {})

    def load(self, key: str) -> bytes | None:
        return self.blobs.get(key)

    def save(self, key: str, data: bytes) -> None:
        self.blobs[key] = data

    def delete(self, key: str) -> None:
        self.blobs.pop(key, None)


def get_db_path() -> Path:
    """Get the database path, creating parent directories if needed."""
    db_path = Path(os.environ.get("HABITS_DB_PATH") or DEFAULT_DB_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


@contextmanager
def get_connection(db_path: Path | None = None) -> Iterator[sqlite3.Connection]:
    """Get a database connection with row factory enabled."""
    path = db_path or get_db_path()
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: Path | None = None) -> None:
    """Initialize the database schema."""
    with get_connection(db_path) as conn:
        conn.executescript(SCHEMA)
        conn.commit()


class SqliteBlobStore:
    """Blob store backed by a single SQLite table."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path
        init_db(db_path)

    def load(self, key: str) -> bytes | None:
        with get_connection(self.db_path) as conn:
            row = conn.execute("SELECT data FROM blobs WHERE key = ?", (key,)).fetchone()
        return bytes(row["data"]) if row else None

    def save(self, key: str, data: bytes) -> None:
        with get_connection(self.db_path) as conn:
            conn.execute(
                """INSERT INTO blobs (key, data, updated_at) VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET data = excluded.data,
                                                  updated_at = excluded.updated_at""",
                (key, sqlite3.Binary(data), datetime.now().isoformat()),
            )
            conn.commit()

    def delete(self, key: str) -> None:
        with get_connection(self.db_path) as conn:
            conn.execute("DELETE FROM blobs WHERE key = ?", (key,))
            conn.commit()


def get_stats(db_path: Path | None = None) -> dict:
    """Get database statistics."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            "SELECT key, LENGTH(data) as size, updated_at FROM blobs ORDER BY key"
        ).fetchall()

    return {
        "path": str(db_path or get_db_path()),
        "blobs": {
            row["key"]: {"bytes": row["size"], "updated_at": row["updated_at"]} for row in rows
        },
    }

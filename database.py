"""
SQLite storage layer for Dreamy Classroom.

Uses raw sqlite3 with WAL mode and parameterized queries. The local store
keeps string blobs keyed by name; sync_events is an append-only history of
push/pull outcomes.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

DEFAULT_DATABASE = str(Path(__file__).parent / "classroom.db")


SCHEMA = """
-- Durable key-value blobs (class dataset, share code, credentials)
CREATE TABLE IF NOT EXISTS local_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT ''
);

-- Sync history (connect, push, pull outcomes)
CREATE TABLE IF NOT EXISTS sync_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event TEXT NOT NULL,
    share_code TEXT NOT NULL DEFAULT '',
    outcome TEXT NOT NULL,
    detail TEXT NOT NULL DEFAULT '',
    last_sync TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_sync_events_created ON sync_events(created_at);
"""


def connect(db_path: str) -> sqlite3.Connection:
    """Open a connection shared across the app's worker threads.

    Callers serialize access with their own lock.
    """
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    return conn


def init_db(db_path: str) -> None:
    """Execute schema DDL to create all tables."""
    conn = connect(db_path)
    try:
        conn.executescript(SCHEMA)
        conn.commit()
    finally:
        conn.close()


def init_app(app) -> str:
    """Create the schema for the configured database and return its path."""
    db_path = app.config.get("DATABASE") or DEFAULT_DATABASE
    app.config["DATABASE"] = db_path
    init_db(db_path)
    app.logger.info("Local store: SQLite (%s)", db_path)
    return db_path

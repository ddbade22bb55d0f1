"""Durable key-value store backed by SQLite.

The browser version of this app kept everything in localStorage; this is the
server-side equivalent. Reads and writes are synchronous so a local change is
durable before any remote push is scheduled.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime

from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from database import connect

logger = logging.getLogger(__name__)

# ── Persisted keys ─────────────────────────────────────────

STUDENTS_KEY = "dreamy-students"
EVENTS_KEY = "dreamy-events"
NOTES_KEY = "dreamy-notes"
SHARE_CODE_KEY = "dreamy-share-code"
LAST_SYNC_KEY = "dreamy-last-sync"
REMOTE_URL_KEY = "dreamy-sb-url"
REMOTE_KEY_KEY = "dreamy-sb-key"
FALLBACK_PREFIX = "cloud_storage_"


def _is_locked(exc: BaseException) -> bool:
    """SQLite reports writer contention as an OperationalError."""
    return isinstance(exc, sqlite3.OperationalError) and "locked" in str(exc).lower()


_retry_locked = retry(
    retry=retry_if_exception(_is_locked),
    wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
    stop=stop_after_attempt(5),
    reraise=True,
)


class LocalStore:
    """String blobs keyed by name. Always available, survives restarts."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._conn = connect(db_path)
        self._lock = threading.Lock()

    @_retry_locked
    def get(self, key: str) -> str | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM local_store WHERE key = ?", (key,)
            ).fetchone()
        return row["value"] if row else None

    @_retry_locked
    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT INTO local_store (key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                "updated_at = excluded.updated_at",
                (key, value, datetime.now().isoformat()),
            )
            self._conn.commit()

    @_retry_locked
    def delete(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM local_store WHERE key = ?", (key,))
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

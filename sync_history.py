"""Append-only log of sync outcomes shown on the sync status screen."""

from __future__ import annotations

import threading
from datetime import datetime

from database import connect

MAX_EVENTS = 500


class SyncHistory:
    def __init__(self, db_path: str) -> None:
        self._conn = connect(db_path)
        self._lock = threading.Lock()

    def record(
        self,
        event: str,
        outcome: str,
        *,
        share_code: str | None = None,
        detail: str = "",
        last_sync: str = "",
    ) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT INTO sync_events (event, share_code, outcome, detail, last_sync, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (event, share_code or "", outcome, detail, last_sync, datetime.now().isoformat()),
            )
            # Keep only the newest MAX_EVENTS rows
            self._conn.execute(
                "DELETE FROM sync_events WHERE id NOT IN "
                "(SELECT id FROM sync_events ORDER BY id DESC LIMIT ?)",
                (MAX_EVENTS,),
            )
            self._conn.commit()

    def recent(self, limit: int = 20) -> list[dict]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT event, share_code, outcome, detail, last_sync, created_at "
                "FROM sync_events ORDER BY id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [dict(r) for r in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()

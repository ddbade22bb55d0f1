"""Remote row store for class snapshots, with a local-only stand-in.

One row per share code in the ``class_rooms`` table:

    code        text primary key
    data        jsonb   -- the full ClassData snapshot
    updated_at  timestamptz  -- informational; reconciliation uses data.lastSync

When no credentials are configured the app runs ``Unconfigured``: snapshots
go to the local store under ``cloud_storage_<code>`` and there is no change
channel. Sync operations behave the same either way; only the destination
differs.

Usage:
    link = RemoteLink(local_store, scheduler)
    link.load_saved()
    link.state.store.upsert(code, snapshot)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Protocol, Union

from local_store import FALLBACK_PREFIX, REMOTE_KEY_KEY, REMOTE_URL_KEY, LocalStore
from models import ClassData

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "class_rooms"


# ── Errors ─────────────────────────────────────────────────


class SyncError(Exception):
    """Base class for sync failures surfaced to the teacher."""


class ShareCodeNotFound(SyncError):
    """No snapshot exists for the share code."""

    def __init__(self, code: str) -> None:
        super().__init__(f"No class data found for code {code!r}")
        self.code = code


class RemoteUnavailable(SyncError):
    """The backend could not be reached or rejected the request."""


class NotConnected(SyncError):
    """A sync operation needs a share code but none is set."""


# ── Protocol ───────────────────────────────────────────────


class RemoteStore(Protocol):
    def upsert(self, code: str, snapshot: ClassData) -> None: ...
    def fetch(self, code: str) -> ClassData: ...


# ── Supabase implementation ────────────────────────────────


class SupabaseRemoteStore:
    """Wraps a supabase-py client; every failure becomes a SyncError."""

    def __init__(self, client: Any, table: str = DEFAULT_TABLE) -> None:
        self._client = client
        self.table = table

    @classmethod
    def from_credentials(cls, url: str, key: str, table: str = DEFAULT_TABLE) -> "SupabaseRemoteStore":
        from supabase import create_client

        return cls(create_client(url, key), table=table)

    def upsert(self, code: str, snapshot: ClassData) -> None:
        row = {
            "code": code,
            "data": snapshot.to_dict(),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self._client.table(self.table).upsert(row, on_conflict="code").execute()
        except Exception as e:
            logger.warning("Supabase upsert failed (code=%s): %s", code, e)
            raise RemoteUnavailable(str(e)) from e

    def fetch(self, code: str) -> ClassData:
        try:
            response = (
                self._client.table(self.table)
                .select("data")
                .eq("code", code)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.warning("Supabase fetch failed (code=%s): %s", code, e)
            raise RemoteUnavailable(str(e)) from e

        rows = response.data or []
        if not rows or not rows[0].get("data"):
            raise ShareCodeNotFound(code)
        data = rows[0]["data"]
        try:
            if isinstance(data, str):
                data = json.loads(data)
            return ClassData.from_dict(data)
        except ValueError as e:
            logger.warning("Malformed snapshot in %s (code=%s): %s", self.table, code, e)
            raise RemoteUnavailable(f"Malformed snapshot for {code!r}: {e}") from e


# ── Local-only stand-in ────────────────────────────────────


class LocalFallbackRemoteStore:
    """Keeps snapshots in the local store when no backend is configured."""

    def __init__(self, local_store: LocalStore) -> None:
        self._local = local_store

    @staticmethod
    def _key(code: str) -> str:
        return f"{FALLBACK_PREFIX}{code}"

    def upsert(self, code: str, snapshot: ClassData) -> None:
        self._local.set(self._key(code), json.dumps(snapshot.to_dict(), ensure_ascii=False))

    def fetch(self, code: str) -> ClassData:
        raw = self._local.get(self._key(code))
        if not raw:
            raise ShareCodeNotFound(code)
        try:
            return ClassData.from_dict(json.loads(raw))
        except ValueError as e:
            logger.warning("Malformed local snapshot (code=%s): %s", code, e)
            raise RemoteUnavailable(f"Malformed snapshot for {code!r}: {e}") from e


# ── Connection state ──────────────────────────────────────


@dataclass(frozen=True)
class Unconfigured:
    store: LocalFallbackRemoteStore
    channel: None = None
    is_connected: bool = field(default=False, init=False)
    mode: str = field(default="unconfigured", init=False)


@dataclass(frozen=True)
class Connected:
    store: RemoteStore
    channel: Any  # change_channel.PollingChangeChannel
    url: str = ""
    is_connected: bool = field(default=True, init=False)
    mode: str = field(default="connected", init=False)


RemoteConnection = Union[Unconfigured, Connected]


class RemoteLink:
    """The app's single remote connection. Owned by the composition root."""

    def __init__(
        self,
        local_store: LocalStore,
        scheduler: Any,
        *,
        table: str = DEFAULT_TABLE,
        poll_seconds: float = 5.0,
        store_factory=SupabaseRemoteStore.from_credentials,
    ) -> None:
        self._local = local_store
        self._scheduler = scheduler
        self.table = table
        self.poll_seconds = poll_seconds
        self._store_factory = store_factory
        self.state: RemoteConnection = Unconfigured(LocalFallbackRemoteStore(local_store))

    @property
    def is_connected(self) -> bool:
        return self.state.is_connected

    def _close_channel(self) -> None:
        if isinstance(self.state, Connected):
            self.state.channel.unsubscribe()

    def configure(self, url: str, key: str, *, persist: bool = True) -> bool:
        """Connect to the backend. Returns False and stays local on bad credentials."""
        from change_channel import PollingChangeChannel

        url, key = (url or "").strip(), (key or "").strip()
        if not url or not key:
            self.reset(forget=False)
            return False
        try:
            store = self._store_factory(url, key, table=self.table)
        except Exception as e:
            logger.warning("Remote store configuration rejected (%s): %s", url, e)
            self.reset(forget=False)
            return False

        self._close_channel()
        channel = PollingChangeChannel(self._scheduler, store, interval_seconds=self.poll_seconds)
        self.state = Connected(store=store, channel=channel, url=url)
        if persist:
            self._local.set(REMOTE_URL_KEY, url)
            self._local.set(REMOTE_KEY_KEY, key)
        logger.info("Remote store: Supabase (%s, table=%s)", url, self.table)
        return True

    def reset(self, *, forget: bool = True) -> None:
        """Drop back to local-only mode, optionally forgetting saved credentials."""
        self._close_channel()
        self.state = Unconfigured(LocalFallbackRemoteStore(self._local))
        if forget:
            self._local.delete(REMOTE_URL_KEY)
            self._local.delete(REMOTE_KEY_KEY)
        logger.info("Remote store: local-only")

    def load_saved(self, default_url: str = "", default_key: str = "") -> bool:
        """Connect with saved credentials, falling back to configured defaults."""
        url = self._local.get(REMOTE_URL_KEY) or default_url
        key = self._local.get(REMOTE_KEY_KEY) or default_key
        if not url or not key:
            return False
        return self.configure(url, key, persist=False)

    def saved_url(self) -> Optional[str]:
        return self._local.get(REMOTE_URL_KEY)

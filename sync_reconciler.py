"""Sync Reconciler — decides when to push, when to pull and what to ignore.

Last-write-wins on the snapshot's ``lastSync`` stamp:

  - Local commands are debounced; only the trailing edit after a quiet window
    pushes the full snapshot with a fresh stamp, and the stamp is adopted
    only once the push succeeds.
  - A remote snapshot is applied only if its stamp is strictly newer than the
    last one this device applied. A device's own push echoing back carries
    the stamp it already adopted, so it is dropped.
  - Applying a remote snapshot notifies listeners with ``Origin.REMOTE``;
    the mutation handler never pushes for that origin.

Handlers arrive from request threads and scheduler threads. A re-entrant lock
serializes them. Lock order is reconciler, then classroom store.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Protocol

from apscheduler.jobstores.base import JobLookupError

from classroom_store import ClassroomStore, Origin
from models import ClassData
from remote_store import (
    NotConnected,
    RemoteLink,
    RemoteUnavailable,
    ShareCodeNotFound,
    SyncError,
)
from share_codes import generate_class_code
from timestamps import SyncClock, is_newer

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 1.5


# ── Debounce ───────────────────────────────────────────────


class Debouncer(Protocol):
    @property
    def pending(self) -> bool: ...
    def schedule(self, func: Callable[[], Any]) -> None: ...
    def cancel(self) -> None: ...


class SchedulerDebouncer:
    """One-shot APScheduler job, replaced on every call to ``schedule``."""

    JOB_ID = "sync_debounced_push"

    def __init__(self, scheduler: Any, delay_seconds: float = DEFAULT_DEBOUNCE_SECONDS) -> None:
        self._scheduler = scheduler
        self.delay_seconds = delay_seconds

    @property
    def pending(self) -> bool:
        return self._scheduler.get_job(self.JOB_ID) is not None

    def schedule(self, func: Callable[[], Any]) -> None:
        run_at = datetime.now(timezone.utc) + timedelta(seconds=self.delay_seconds)
        self._scheduler.add_job(
            func=func,
            trigger="date",
            run_date=run_at,
            id=self.JOB_ID,
            replace_existing=True,
        )

    def cancel(self) -> None:
        try:
            self._scheduler.remove_job(self.JOB_ID)
        except JobLookupError:
            pass


# ── Reconciler ─────────────────────────────────────────────


@dataclass
class ConnectResult:
    share_code: str
    pushed: bool


class SyncReconciler:
    def __init__(
        self,
        classroom: ClassroomStore,
        remote: RemoteLink,
        debouncer: Debouncer,
        *,
        history: Any = None,
        clock: SyncClock | None = None,
        code_generator: Callable[[], str] = generate_class_code,
    ) -> None:
        self.classroom = classroom
        self.remote = remote
        self.debouncer = debouncer
        self.history = history
        self._clock = clock or SyncClock()
        self._generate_code = code_generator
        self._lock = threading.RLock()
        self._subscription = None
        self.last_error: Optional[str] = None
        self.push_count = 0
        classroom.add_listener(self.on_local_mutation)

    # ── State ─────────────────────────────────────────────

    @property
    def share_code(self) -> Optional[str]:
        return self.classroom.share_code

    @property
    def last_sync(self) -> str:
        return self.classroom.last_sync

    @property
    def listening(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def status(self) -> dict:
        return {
            "share_code": self.share_code,
            "last_sync": self.last_sync or None,
            "remote": self.remote.state.mode,
            "listening": self.listening,
            "pending_push": self.debouncer.pending,
            "push_count": self.push_count,
            "last_error": self.last_error,
        }

    def _record(self, event: str, outcome: str, detail: str = "") -> None:
        if self.history is not None:
            self.history.record(
                event, outcome, share_code=self.share_code, detail=detail, last_sync=self.last_sync
            )

    # ── Subscription ──────────────────────────────────────

    def _unsubscribe(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def _subscribe(self, code: str) -> None:
        self._unsubscribe()
        channel = self.remote.state.channel
        if channel is None:
            return
        self._subscription = channel.subscribe(
            code, lambda snapshot: self.on_remote_notification(snapshot, code=code)
        )

    def start(self) -> None:
        """Resume listening for a share code restored from the local store."""
        with self._lock:
            if self.share_code:
                self._subscribe(self.share_code)

    def stop(self, flush: bool = True) -> None:
        """Teardown: send any pending edit, then stop listening."""
        with self._lock:
            pending = self.debouncer.pending
            self.debouncer.cancel()
            if flush and pending and self.share_code:
                self._push(self.share_code)
            self._unsubscribe()

    def on_remote_reconfigured(self) -> None:
        """Re-attach the change channel after the remote link changed."""
        with self._lock:
            self._unsubscribe()
            if self.share_code:
                self._subscribe(self.share_code)

    # ── Push ──────────────────────────────────────────────

    def _push(self, code: str) -> bool:
        stamp = self._clock.next_stamp(after=self.last_sync)
        snapshot = self.classroom.snapshot(last_sync=stamp)
        snapshot.share_code = code
        try:
            self.remote.state.store.upsert(code, snapshot)
        except SyncError as e:
            self.last_error = str(e)
            logger.warning("Push for %s failed; lastSync stays %s: %s", code, self.last_sync, e)
            self._record("push", "failed", str(e))
            return False
        self.push_count += 1
        self.classroom.adopt_last_sync(stamp)
        self.last_error = None
        logger.info("Pushed %s at %s", code, stamp)
        self._record("push", "ok")
        return True

    def _flush_push(self) -> bool:
        """Debounced push. Dropped if sync was disconnected in the meantime."""
        with self._lock:
            code = self.share_code
            if not code:
                logger.debug("Dropping debounced push: no share code")
                return False
            return self._push(code)

    # ── Operations ────────────────────────────────────────

    def connect_new(self) -> ConnectResult:
        """Create a share code, push the current data under it and start listening."""
        with self._lock:
            self.debouncer.cancel()
            code = self._generate_code()
            self.classroom.set_share_code(code)
            self._record("create", "ok")
            pushed = self._push(code)
            self._subscribe(code)
            return ConnectResult(share_code=code, pushed=pushed)

    def connect_existing(self, code: str) -> ClassData:
        """Adopt ``code`` and replace local data with its snapshot.

        Raises:
            ShareCodeNotFound: no snapshot for ``code``; nothing changes.
            RemoteUnavailable: backend failure; nothing changes.
        """
        code = (code or "").strip()
        if not code:
            raise ValueError("Share code is required")
        with self._lock:
            try:
                snapshot = self.remote.state.store.fetch(code)
            except (ShareCodeNotFound, RemoteUnavailable) as e:
                self.last_error = str(e)
                logger.warning("Could not connect to %s: %s", code, e)
                if self.history is not None:
                    self.history.record("connect", "failed", share_code=code, detail=str(e))
                raise
            self.debouncer.cancel()
            # Starting a new session: the fetched stamp becomes the baseline.
            self.classroom.replace(snapshot, share_code=code, origin=Origin.REMOTE)
            self.last_error = None
            self._record("connect", "ok")
            self._subscribe(code)
            logger.info("Connected to %s (lastSync=%s)", code, snapshot.last_sync)
            return self.classroom.snapshot()

    def disconnect(self) -> None:
        with self._lock:
            self.debouncer.cancel()
            self._unsubscribe()
            if self.share_code:
                self._record("disconnect", "ok")
            self.classroom.set_share_code(None)
            self.last_error = None

    def on_local_mutation(self, origin: Origin = Origin.LOCAL) -> None:
        """Classroom-store listener. Must not take the reconciler lock."""
        if origin is not Origin.LOCAL:
            return
        if not self.share_code:
            return
        self.debouncer.schedule(self._flush_push)

    def _apply_if_newer(self, snapshot: ClassData, code: str) -> bool:
        if not is_newer(snapshot.last_sync, self.last_sync):
            logger.debug(
                "Ignoring snapshot for %s: %s is not newer than %s",
                code, snapshot.last_sync, self.last_sync,
            )
            return False
        self.debouncer.cancel()
        self.classroom.replace(snapshot, share_code=code, origin=Origin.REMOTE)
        logger.info("Applied remote snapshot for %s (lastSync=%s)", code, snapshot.last_sync)
        self._record("pull", "ok")
        return True

    def on_remote_notification(self, snapshot: ClassData, code: str | None = None) -> bool:
        """Change-channel callback. Returns True if the snapshot was applied."""
        with self._lock:
            current = self.share_code
            if not current or (code is not None and code != current):
                return False
            return self._apply_if_newer(snapshot, current)

    def refresh_now(self) -> bool:
        """Manual pull. Returns True if newer data was applied."""
        with self._lock:
            code = self.share_code
            if not code:
                raise NotConnected("No share code set")
            try:
                snapshot = self.remote.state.store.fetch(code)
            except SyncError as e:
                self.last_error = str(e)
                self._record("pull", "failed", str(e))
                raise
            self.last_error = None
            return self._apply_if_newer(snapshot, code)

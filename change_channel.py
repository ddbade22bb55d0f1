"""Change notifications for the current share code.

supabase-py's synchronous client has no realtime feed, so the channel polls
the row on an APScheduler interval job and reports a snapshot whenever its
``lastSync`` differs from the last one delivered. Only one subscription is
active at a time; subscribing again replaces it.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from apscheduler.jobstores.base import JobLookupError

from models import ClassData
from remote_store import RemoteStore, RemoteUnavailable, ShareCodeNotFound

logger = logging.getLogger(__name__)

OnChange = Callable[[ClassData], Any]


class Subscription:
    def __init__(self, channel: "PollingChangeChannel", code: str, on_change: OnChange) -> None:
        self.channel = channel
        self.code = code
        self.on_change = on_change
        self.last_seen: Optional[str] = None

    @property
    def active(self) -> bool:
        return self.channel.active is self

    def cancel(self) -> None:
        self.channel.unsubscribe(self)


class PollingChangeChannel:
    JOB_ID = "sync_change_channel"

    def __init__(self, scheduler: Any, store: RemoteStore, interval_seconds: float = 5.0) -> None:
        self._scheduler = scheduler
        self._store = store
        self.interval_seconds = interval_seconds
        self._lock = threading.Lock()
        self.active: Optional[Subscription] = None

    def subscribe(self, code: str, on_change: OnChange) -> Subscription:
        self.unsubscribe()
        subscription = Subscription(self, code, on_change)
        with self._lock:
            self.active = subscription
        self._scheduler.add_job(
            func=self.poll,
            trigger="interval",
            seconds=self.interval_seconds,
            id=self.JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Listening for changes to %s (every %ss)", code, self.interval_seconds)
        return subscription

    def unsubscribe(self, subscription: Optional[Subscription] = None) -> None:
        """Cancel ``subscription`` (or whatever is active)."""
        with self._lock:
            if self.active is None:
                return
            if subscription is not None and subscription is not self.active:
                return
            code = self.active.code
            self.active = None
        try:
            self._scheduler.remove_job(self.JOB_ID)
        except JobLookupError:
            pass
        logger.info("Stopped listening for changes to %s", code)

    def poll(self) -> bool:
        """Fetch the row once; returns True if a change was delivered."""
        subscription = self.active
        if subscription is None:
            return False
        try:
            snapshot = self._store.fetch(subscription.code)
        except ShareCodeNotFound:
            logger.debug("No remote row yet for %s", subscription.code)
            return False
        except RemoteUnavailable as e:
            logger.warning("Change poll failed for %s: %s", subscription.code, e)
            return False

        if snapshot.last_sync == subscription.last_seen:
            return False
        if not subscription.active:
            return False
        subscription.last_seen = snapshot.last_sync
        subscription.on_change(snapshot)
        return True

"""
Shared app objects: the rate limiter and the classroom service container.

The container replaces module-level connection globals: create_app() builds
one and stores it on ``app.extensions``; blueprints fetch it per request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from flask import current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from classroom_store import ClassroomStore
from local_store import LocalStore
from remote_store import RemoteLink
from sync_history import SyncHistory
from sync_reconciler import SchedulerDebouncer, SyncReconciler

limiter = Limiter(key_func=get_remote_address, default_limits=["200 per hour"])

EXTENSION_KEY = "classroom"


@dataclass
class ClassroomServices:
    local_store: LocalStore
    classroom: ClassroomStore
    remote: RemoteLink
    reconciler: SyncReconciler
    history: SyncHistory
    scheduler: Any

    def shutdown(self) -> None:
        self.reconciler.stop()
        if getattr(self.scheduler, "running", False):
            self.scheduler.shutdown(wait=False)
        self.history.close()
        self.local_store.close()


def build_services(app, scheduler) -> ClassroomServices:
    """Wire the classroom, remote link and reconciler for ``app``."""
    db_path = app.config["DATABASE"]
    local_store = LocalStore(db_path)
    classroom = ClassroomStore(local_store)
    remote = RemoteLink(
        local_store,
        scheduler,
        table=app.config.get("SUPABASE_TABLE", "class_rooms"),
        poll_seconds=app.config.get("SYNC_POLL_SECONDS", 5.0),
    )
    remote.load_saved(app.config.get("SUPABASE_URL", ""), app.config.get("SUPABASE_KEY", ""))
    history = SyncHistory(db_path)
    reconciler = SyncReconciler(
        classroom,
        remote,
        SchedulerDebouncer(scheduler, app.config.get("SYNC_DEBOUNCE_SECONDS", 1.5)),
        history=history,
    )
    services = ClassroomServices(
        local_store=local_store,
        classroom=classroom,
        remote=remote,
        reconciler=reconciler,
        history=history,
        scheduler=scheduler,
    )
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> ClassroomServices:
    return current_app.extensions[EXTENSION_KEY]

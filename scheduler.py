"""
Centralized Scheduler — one APScheduler instance per app.

Jobs:
  - Debounced sync push (one-shot, replaced on every local change)
  - Change-channel polling for the current share code (interval)
  - AI response cache cleanup (every 1 hour)
"""

from __future__ import annotations

from apscheduler.schedulers.background import BackgroundScheduler


def create_scheduler() -> BackgroundScheduler:
    # Sync jobs must never run concurrently with themselves.
    return BackgroundScheduler(
        daemon=True,
        job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 30},
    )


def init_scheduler(app, scheduler: BackgroundScheduler) -> BackgroundScheduler:
    """Register periodic jobs and start ``scheduler`` (not in testing)."""

    def _cleanup_ai_cache():
        from ai_resilience import get_cache
        removed = get_cache().cleanup()
        if removed:
            app.logger.debug("AI cache cleanup removed %d entries", removed)

    scheduler.add_job(
        func=_cleanup_ai_cache,
        trigger="interval",
        hours=1,
        id="ai_cache_cleanup",
        replace_existing=True,
    )

    if app.config.get("TESTING"):
        return scheduler

    scheduler.start()
    app.logger.info("Scheduler started (sync push, change polling, cache cleanup)")
    return scheduler

"""Sync timestamps.

``lastSync`` travels as a fixed-width UTC ISO-8601 string with millisecond
precision (``2026-03-02T08:30:00.000Z``), the format browser clients produce
with ``Date.toISOString()``. Stamps are always parsed before comparison so
ordering never depends on string layout.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ONE_MS = timedelta(milliseconds=1)
# Exclusive upper bound for accepted stamps; leaves room to step past lastSync.
LATEST = datetime(9999, 1, 1, tzinfo=timezone.utc)


def format_stamp(moment: datetime) -> str:
    """Render an aware (or UTC-naive) datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def _to_datetime(value: str | int | float) -> datetime:
    if isinstance(value, (int, float)):
        return EPOCH + timedelta(milliseconds=value)

    text = str(value).strip()
    if text.isdigit():
        return EPOCH + timedelta(milliseconds=int(text))
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def parse_stamp(value: str | int | float | None) -> datetime:
    """Parse a stamp into an aware UTC datetime.

    Accepts ISO-8601 strings (``Z`` suffix, explicit offset, or naive = UTC)
    and epoch milliseconds. Missing values parse as the epoch.

    Raises:
        ValueError: if the value cannot be interpreted or lies outside
            ``EPOCH`` .. ``LATEST``.
    """
    if value is None or value == "":
        return EPOCH
    if isinstance(value, bool):
        raise ValueError(f"Invalid sync stamp: {value!r}")
    try:
        moment = _to_datetime(value)
    except OverflowError:
        raise ValueError(f"Sync stamp out of range: {value!r}") from None
    if not EPOCH <= moment < LATEST:
        raise ValueError(f"Sync stamp out of range: {value!r}")
    return moment


def is_newer(candidate: str | None, current: str | None) -> bool:
    """True only if ``candidate`` is chronologically after ``current``."""
    try:
        incoming = parse_stamp(candidate)
    except (TypeError, ValueError):
        logger.warning("Ignoring snapshot with unreadable lastSync %r", candidate)
        return False
    try:
        known = parse_stamp(current)
    except (TypeError, ValueError):
        known = EPOCH
    return incoming > known


class SyncClock:
    """Issues strictly increasing stamps for outgoing pushes."""

    def __init__(self, now: Callable[[], datetime] | None = None) -> None:
        self._now = now or (lambda: datetime.now(timezone.utc))

    def next_stamp(self, after: str | None = None) -> str:
        moment = self._now()
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        moment = moment.replace(microsecond=(moment.microsecond // 1000) * 1000)
        try:
            floor = parse_stamp(after) + ONE_MS if after else None
        except (TypeError, ValueError):
            floor = None
        if floor is not None and moment < floor:
            moment = floor
        return format_stamp(moment)

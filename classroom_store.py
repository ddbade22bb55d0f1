"""
Classroom store: the in-memory ClassData aggregate and its commands.

Every command persists the touched key to the local store before listeners
are told about the change, so local durability never waits on the network.
Listeners receive the origin of the change: ``Origin.LOCAL`` for teacher
commands, ``Origin.REMOTE`` when a remote snapshot is being applied.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import date
from enum import Enum
from typing import Callable, Optional

from local_store import (
    EVENTS_KEY,
    LAST_SYNC_KEY,
    NOTES_KEY,
    SHARE_CODE_KEY,
    STUDENTS_KEY,
    LocalStore,
)
from models import (
    EVENT_TYPES,
    CalendarEvent,
    ClassData,
    ClassNote,
    Student,
    decode_records,
    validate_date,
)
from timestamps import is_newer

logger = logging.getLogger(__name__)


class Origin(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


ChangeListener = Callable[[Origin], None]


class ClassroomStore:
    """Owns the single ClassData of this device."""

    def __init__(self, local_store: LocalStore) -> None:
        self._local = local_store
        self._lock = threading.RLock()
        self._listeners: list[ChangeListener] = []
        self._data = self._load()

    # ── Loading / persistence ─────────────────────────────

    def _load_list(self, key: str, decoder) -> list:
        raw = self._local.get(key)
        if not raw:
            return []
        try:
            return decode_records(json.loads(raw), decoder, key)
        except ValueError as e:
            logger.warning("Discarding unreadable local blob %s: %s", key, e)
            return []

    def _load(self) -> ClassData:
        return ClassData(
            students=self._load_list(STUDENTS_KEY, Student.from_dict),
            events=self._load_list(EVENTS_KEY, CalendarEvent.from_dict),
            notes=self._load_list(NOTES_KEY, ClassNote.from_dict),
            last_sync=self._local.get(LAST_SYNC_KEY) or "",
            share_code=self._local.get(SHARE_CODE_KEY) or None,
        )

    def _persist_students(self) -> None:
        self._local.set(STUDENTS_KEY, json.dumps([s.to_dict() for s in self._data.students], ensure_ascii=False))

    def _persist_events(self) -> None:
        self._local.set(EVENTS_KEY, json.dumps([e.to_dict() for e in self._data.events], ensure_ascii=False))

    def _persist_notes(self) -> None:
        self._local.set(NOTES_KEY, json.dumps([n.to_dict() for n in self._data.notes], ensure_ascii=False))

    def _persist_sync_state(self) -> None:
        self._local.set(LAST_SYNC_KEY, self._data.last_sync)
        if self._data.share_code:
            self._local.set(SHARE_CODE_KEY, self._data.share_code)
        else:
            self._local.delete(SHARE_CODE_KEY)

    # ── Listeners ─────────────────────────────────────────

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _notify(self, origin: Origin) -> None:
        for listener in list(self._listeners):
            listener(origin)

    # ── Read access ───────────────────────────────────────

    @property
    def share_code(self) -> Optional[str]:
        return self._data.share_code

    @property
    def last_sync(self) -> str:
        return self._data.last_sync

    @property
    def students(self) -> list[Student]:
        with self._lock:
            return [Student(**vars(s)) for s in self._data.students]

    @property
    def events(self) -> list[CalendarEvent]:
        with self._lock:
            return [CalendarEvent(**vars(e)) for e in self._data.events]

    @property
    def notes(self) -> list[ClassNote]:
        with self._lock:
            return [ClassNote(**vars(n)) for n in self._data.notes]

    def snapshot(self, last_sync: str | None = None) -> ClassData:
        """Deep copy of the current data, optionally re-stamped."""
        with self._lock:
            snap = self._data.copy()
        if last_sync is not None:
            snap.last_sync = last_sync
        return snap

    def get_student(self, student_id: str) -> Student:
        with self._lock:
            for s in self._data.students:
                if s.id == student_id:
                    return Student(**vars(s))
        raise KeyError(student_id)

    # ── Student commands ──────────────────────────────────

    def add_student(self, name: str, number: int | None = None) -> Student:
        if name is not None and not isinstance(name, str):
            raise ValueError("Student name must be text")
        name = (name or "").strip()
        if not name:
            raise ValueError("Student name is required")
        with self._lock:
            if number is None:
                number = len(self._data.students) + 1
            student = Student(name=name, number=int(number))
            self._data.students.append(student)
            self._persist_students()
        self._notify(Origin.LOCAL)
        return Student(**vars(student))

    def update_stickers(self, student_id: str, amount: int) -> Student:
        """Add ``amount`` stickers (negative to remove); the count floors at 0."""
        with self._lock:
            for i, s in enumerate(self._data.students):
                if s.id == student_id:
                    updated = s.with_stickers(int(amount))
                    self._data.students[i] = updated
                    break
            else:
                raise KeyError(student_id)
            self._persist_students()
        self._notify(Origin.LOCAL)
        return Student(**vars(updated))

    def delete_student(self, student_id: str) -> bool:
        with self._lock:
            before = len(self._data.students)
            self._data.students = [s for s in self._data.students if s.id != student_id]
            if len(self._data.students) == before:
                return False
            self._persist_students()
        self._notify(Origin.LOCAL)
        return True

    # ── Event commands ────────────────────────────────────

    def add_event(self, event_date: str, title: str, event_type: str = "event") -> CalendarEvent:
        event_date = validate_date(event_date)
        if title is not None and not isinstance(title, str):
            raise ValueError("Event title must be text")
        title = (title or "").strip()
        if not title:
            raise ValueError("Event title is required")
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type {event_type!r}; expected one of {', '.join(EVENT_TYPES)}")
        with self._lock:
            event = CalendarEvent(date=event_date, title=title, type=event_type)
            self._data.events.append(event)
            self._persist_events()
        self._notify(Origin.LOCAL)
        return CalendarEvent(**vars(event))

    def delete_event(self, event_id: str) -> bool:
        with self._lock:
            before = len(self._data.events)
            self._data.events = [e for e in self._data.events if e.id != event_id]
            if len(self._data.events) == before:
                return False
            self._persist_events()
        self._notify(Origin.LOCAL)
        return True

    # ── Sync state ────────────────────────────────────────

    def set_share_code(self, code: Optional[str]) -> None:
        with self._lock:
            self._data.share_code = code or None
            self._persist_sync_state()

    def adopt_last_sync(self, stamp: str) -> bool:
        """Advance lastSync to ``stamp``. Older or equal stamps are ignored."""
        with self._lock:
            if not is_newer(stamp, self._data.last_sync):
                return False
            self._data.last_sync = stamp
            self._persist_sync_state()
            return True

    def replace(self, snapshot: ClassData, *, share_code: Optional[str], origin: Origin = Origin.REMOTE) -> None:
        """Wholesale replace of records and lastSync with ``snapshot``.

        The snapshot's own share code is not trusted; the caller states which
        code this data now belongs to.
        """
        incoming = snapshot.copy()
        with self._lock:
            self._data = ClassData(
                students=incoming.students,
                events=incoming.events,
                notes=incoming.notes,
                last_sync=incoming.last_sync,
                share_code=share_code or None,
            )
            self._persist_students()
            self._persist_events()
            self._persist_notes()
            self._persist_sync_state()
        self._notify(origin)

    # ── Queries ───────────────────────────────────────────

    def sorted_students(self) -> list[Student]:
        return sorted(self.students, key=lambda s: s.number)

    def top_student(self) -> Student | None:
        """Student with the most stickers; the earliest listed wins ties."""
        students = self.students
        if not students:
            return None
        return max(students, key=lambda s: s.stickers)

    def events_on(self, event_date: str) -> list[CalendarEvent]:
        return [e for e in self.events if e.date == event_date]

    def events_in_month(self, year: int, month: int) -> list[CalendarEvent]:
        prefix = f"{year:04d}-{month:02d}-"
        return [e for e in self.events if e.date.startswith(prefix)]

    def upcoming_events(self, limit: int = 5, today: date | None = None) -> list[CalendarEvent]:
        today_str = (today or date.today()).isoformat()
        upcoming = sorted((e for e in self.events if e.date >= today_str), key=lambda e: e.date)
        return upcoming[:limit]

    def summary(self, today: date | None = None) -> dict:
        today = today or date.today()
        top = self.top_student()
        return {
            "student_count": len(self.students),
            "events_this_month": len(self.events_in_month(today.year, today.month)),
            "top_student": top.to_dict() if top else None,
            "upcoming_events": [e.to_dict() for e in self.upcoming_events(today=today)],
            "share_code": self.share_code,
            "last_sync": self.last_sync,
        }

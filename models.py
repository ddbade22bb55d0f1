"""
Classroom records: students, calendar events, notes and the ClassData snapshot.

ClassData is the unit written to the local store and exchanged with the remote
row store. Wire keys are camelCase so snapshots stay readable by the browser
clients that share the same table.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Optional

EVENT_TYPES = ("holiday", "event", "exam", "other")


def new_id() -> str:
    return str(uuid.uuid4())


def validate_date(value: str) -> str:
    """Return ``value`` if it is a ``YYYY-MM-DD`` calendar date."""
    text = str(value or "").strip()
    try:
        date.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Invalid date {value!r}; expected YYYY-MM-DD") from None
    if len(text) != 10:
        raise ValueError(f"Invalid date {value!r}; expected YYYY-MM-DD")
    return text


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def decode_records(items: Any, decoder: Callable[[dict], Any], label: str) -> list:
    """Decode a list of record objects; anything else raises ValueError."""
    if not items:
        return []
    if not isinstance(items, list):
        raise ValueError(f"{label} must be a list")
    for item in items:
        if not isinstance(item, dict):
            raise ValueError(f"{label} entries must be objects, got {type(item).__name__}")
    return [decoder(item) for item in items]


@dataclass
class Student:
    name: str
    number: int
    stickers: int = 0  # never below zero
    id: str = field(default_factory=new_id)

    def with_stickers(self, amount: int) -> "Student":
        return Student(
            name=self.name,
            number=self.number,
            stickers=max(0, self.stickers + amount),
            id=self.id,
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "number": self.number, "stickers": self.stickers}

    @classmethod
    def from_dict(cls, data: dict) -> "Student":
        return cls(
            id=str(data.get("id") or new_id()),
            name=str(data.get("name", "")),
            number=_as_int(data.get("number")),
            stickers=max(0, _as_int(data.get("stickers"))),
        )


@dataclass
class CalendarEvent:
    date: str  # YYYY-MM-DD
    title: str
    type: str = "event"  # holiday | event | exam | other
    id: str = field(default_factory=new_id)

    def to_dict(self) -> dict:
        return {"id": self.id, "date": self.date, "title": self.title, "type": self.type}

    @classmethod
    def from_dict(cls, data: dict) -> "CalendarEvent":
        event_type = data.get("type", "other")
        return cls(
            id=str(data.get("id") or new_id()),
            date=str(data.get("date", "")),
            title=str(data.get("title", "")),
            type=event_type if event_type in EVENT_TYPES else "other",
        )


@dataclass
class ClassNote:
    date: str
    content: str
    id: str = field(default_factory=new_id)

    def to_dict(self) -> dict:
        return {"id": self.id, "date": self.date, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict) -> "ClassNote":
        return cls(
            id=str(data.get("id") or new_id()),
            date=str(data.get("date", "")),
            content=str(data.get("content", "")),
        )


@dataclass
class ClassData:
    students: list[Student] = field(default_factory=list)
    events: list[CalendarEvent] = field(default_factory=list)
    notes: list[ClassNote] = field(default_factory=list)
    last_sync: str = ""
    share_code: Optional[str] = None

    def copy(self) -> "ClassData":
        return copy.deepcopy(self)

    def same_content(self, other: "ClassData") -> bool:
        """Compare the synced records, ignoring stamp and share code."""
        return (
            self.students == other.students
            and self.events == other.events
            and self.notes == other.notes
        )

    def to_dict(self) -> dict:
        data = {
            "students": [s.to_dict() for s in self.students],
            "events": [e.to_dict() for e in self.events],
            "notes": [n.to_dict() for n in self.notes],
            "lastSync": self.last_sync,
        }
        if self.share_code:
            data["shareCode"] = self.share_code
        return data

    @classmethod
    def from_dict(cls, data: dict | None) -> "ClassData":
        """Decode a snapshot. Accepts the legacy ``cloudId`` key for the share code.

        Raises:
            ValueError: if the snapshot or any of its records is not an object.
        """
        if not isinstance(data, dict):
            raise ValueError("ClassData snapshot must be a JSON object")
        share_code = data.get("shareCode") or data.get("cloudId") or None
        return cls(
            students=decode_records(data.get("students"), Student.from_dict, "students"),
            events=decode_records(data.get("events"), CalendarEvent.from_dict, "events"),
            notes=decode_records(data.get("notes"), ClassNote.from_dict, "notes"),
            last_sync=str(data.get("lastSync") or ""),
            share_code=str(share_code) if share_code else None,
        )

# core/models.py
import datetime
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional

import pytz

from .checksum import compute_checksum


def now_utc() -> datetime.datetime:
    return datetime.datetime.now(tz=pytz.UTC).replace(microsecond=0)


def to_utc(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def format_iso(value: Optional[datetime.datetime]) -> Optional[str]:
    if value is None:
        return None
    # Sub-second precision is kept only when present.
    return to_utc(value).isoformat().replace("+00:00", "Z")


def parse_iso(value: Optional[str]) -> Optional[datetime.datetime]:
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return to_utc(datetime.datetime.fromisoformat(value))


class Priority(IntEnum):
    """Reminder priority, using the ordinal values of the Reminders app."""
    NONE = 0
    HIGH = 1
    MEDIUM = 5
    LOW = 9


class ChangeKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    COMPLETED = "completed"
    DELETED = "deleted"


ALL_CHANGE_KINDS = [k.value for k in ChangeKind]

_FREQUENCY_UNITS = {
    "daily": "days",
    "weekly": "weeks",
    "monthly": "months",
    "yearly": "years",
}


@dataclass
class Recurrence:
    frequency: str
    interval: int = 1
    end_date: Optional[datetime.datetime] = None

    def describe(self) -> str:
        if self.interval == 1:
            text = f"Repeats {self.frequency}"
        else:
            unit = _FREQUENCY_UNITS.get(self.frequency, self.frequency)
            text = f"Repeats every {self.interval} {unit}"
        if self.end_date is not None:
            end = to_utc(self.end_date)
            text += f" until {end.strftime('%b')} {end.day}, {end.year}"
        return text


@dataclass
class ReminderList:
    list_id: str
    title: str
    color: Optional[str] = None
    is_default: bool = False


@dataclass
class Reminder:
    """
    A reminder as read from the item store.
    The watcher only reads these; the item store owns them.
    """
    reminder_id: str
    title: str
    list_name: str
    is_completed: bool = False
    due_date: Optional[datetime.datetime] = None
    notes: Optional[str] = None
    priority: int = Priority.NONE
    recurrence: Optional[Recurrence] = None

    @property
    def recurrence_rule(self) -> Optional[str]:
        return self.recurrence.describe() if self.recurrence else None


@dataclass
class ReminderSnapshot:
    """
    Last observed state of a reminder, as persisted in reminder_snapshots.
    checksum always matches the other fields; call refresh_checksum() after
    assigning them.
    """
    reminder_id: str
    title: str
    list_name: str
    is_completed: bool = False
    due_date: Optional[datetime.datetime] = None
    checksum: str = ""
    last_seen: Optional[datetime.datetime] = None

    def __post_init__(self):
        if not self.checksum:
            self.refresh_checksum()

    @classmethod
    def from_reminder(cls, reminder: Reminder) -> "ReminderSnapshot":
        return cls(
            reminder_id=reminder.reminder_id,
            title=reminder.title,
            list_name=reminder.list_name,
            is_completed=reminder.is_completed,
            due_date=reminder.due_date,
        )

    def refresh_checksum(self) -> None:
        self.checksum = compute_checksum(
            self.title, self.list_name, self.is_completed, self.due_date
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "reminderID": self.reminder_id,
            "title": self.title,
            "listName": self.list_name,
            "isCompleted": self.is_completed,
            "dueDate": format_iso(self.due_date),
        }


@dataclass
class ChangeEvent:
    kind: ChangeKind
    reminder: ReminderSnapshot
    previous: Optional[ReminderSnapshot] = None

    @property
    def reminder_id(self) -> str:
        return self.reminder.reminder_id

    @property
    def list_name(self) -> str:
        return self.reminder.list_name

    @property
    def event_name(self) -> str:
        return f"reminder.{self.kind.value}"


@dataclass
class Webhook:
    webhook_id: str
    url: str
    events: List[str] = field(default_factory=lambda: list(ALL_CHANGE_KINDS))
    secret: Optional[str] = None
    reminder_id: Optional[str] = None
    list_name: Optional[str] = None
    active: bool = True
    created_at: Optional[datetime.datetime] = None

    def matches(self, event: ChangeEvent) -> bool:
        """Event kind must be subscribed; both filters, when set, must match."""
        if event.kind.value not in self.events:
            return False
        if self.reminder_id is not None and self.reminder_id != event.reminder_id:
            return False
        if self.list_name is not None and self.list_name != event.list_name:
            return False
        return True

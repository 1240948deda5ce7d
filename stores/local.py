# stores/local.py
import os
import sqlite3
import uuid
from contextlib import contextmanager
from typing import Callable, Iterable, List, Optional

from core.errors import NoReminderListsError, ReminderNotFoundError
from core.logger import get_logger
from core.models import (
    Priority,
    Recurrence,
    Reminder,
    ReminderList,
    format_iso,
    now_utc,
    parse_iso,
)

logger = get_logger(__name__)

REMINDERS_DB_PATH = os.getenv("REMINDERS_DB_PATH", "/data/reminders.sqlite3")
DEFAULT_LIST_NAME = os.getenv("DEFAULT_LIST_NAME", "Reminders")
# Extra lists to create on startup (comma or semicolon separated)
_REMINDER_LISTS_RAW = os.getenv("REMINDER_LISTS", "").strip()

# Marks "field not supplied" in update_reminder, distinct from None (= clear).
UNSET = object()


def get_configured_lists() -> list[str]:
    if not _REMINDER_LISTS_RAW:
        return []
    parts = [p.strip() for p in _REMINDER_LISTS_RAW.replace(";", ",").split(",")]
    return [p for p in parts if p]


_SELECT_REMINDERS = """
    SELECT r.reminder_id, r.title, l.title, r.is_completed, r.due_date, r.notes,
           r.priority, r.recurrence_frequency, r.recurrence_interval,
           r.recurrence_end
    FROM reminders r
    JOIN reminder_lists l ON l.list_id = r.list_id
"""


def _row_to_reminder(row) -> Reminder:
    (
        reminder_id, title, list_name, is_completed, due_date, notes,
        priority, frequency, interval, recurrence_end,
    ) = row
    recurrence = None
    if frequency:
        recurrence = Recurrence(
            frequency=frequency,
            interval=interval or 1,
            end_date=parse_iso(recurrence_end),
        )
    return Reminder(
        reminder_id=reminder_id,
        title=title,
        list_name=list_name,
        is_completed=bool(is_completed),
        due_date=parse_iso(due_date),
        notes=notes,
        priority=priority or Priority.NONE,
        recurrence=recurrence,
    )


def _recurrence_columns(recurrence: Optional[Recurrence]):
    if recurrence is None:
        return None, None, None
    return recurrence.frequency, recurrence.interval, format_iso(recurrence.end_date)


class LocalReminderStore:
    """
    SQLite-backed reminders store with lists, CRUD and change listeners.

    Every successful mutation calls the registered listeners, which is how
    the watcher learns that it should resync without waiting for a poll.
    """

    kind = "local"

    def __init__(
        self,
        db_path: Optional[str] = None,
        list_names: Optional[Iterable[str]] = None,
    ):
        self.db_path = db_path or REMINDERS_DB_PATH
        self._listeners: List[Callable[[], None]] = []
        self.ensure_db()
        if list_names is None:
            list_names = get_configured_lists()
        for name in list_names:
            self.add_list(name)

    @contextmanager
    def _connect(self):
        os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)
        con = sqlite3.connect(self.db_path, timeout=30)
        try:
            yield con
            con.commit()
        finally:
            con.close()

    def ensure_db(self) -> None:
        with self._connect() as con:
            cur = con.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS reminder_lists (
                    list_id TEXT PRIMARY KEY,
                    title TEXT NOT NULL UNIQUE,
                    color TEXT,
                    is_default INTEGER NOT NULL DEFAULT 0
                )
            """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS reminders (
                    reminder_id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    list_id TEXT NOT NULL REFERENCES reminder_lists(list_id),
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    due_date TEXT,
                    notes TEXT,
                    priority INTEGER NOT NULL DEFAULT 0,
                    recurrence_frequency TEXT,
                    recurrence_interval INTEGER,
                    recurrence_end TEXT,
                    created_at TEXT
                )
            """
            )
            cur.execute("SELECT COUNT(*) FROM reminder_lists")
            if cur.fetchone()[0] == 0 and DEFAULT_LIST_NAME:
                cur.execute(
                    "INSERT INTO reminder_lists (list_id, title, color, is_default) "
                    "VALUES (?,?,?,1)",
                    (str(uuid.uuid4()), DEFAULT_LIST_NAME, None),
                )
                logger.info("Created default reminder list '%s'", DEFAULT_LIST_NAME)

    # -- listeners ---------------------------------------------------------

    def add_listener(self, callback: Callable[[], None]) -> None:
        self._listeners.append(callback)

    def _notify(self) -> None:
        for callback in list(self._listeners):
            try:
                callback()
            except Exception:
                logger.exception("Reminder store listener failed")

    # -- lists -------------------------------------------------------------

    def list_lists(self) -> List[ReminderList]:
        with self._connect() as con:
            cur = con.cursor()
            cur.execute(
                "SELECT list_id, title, color, is_default FROM reminder_lists "
                "ORDER BY rowid"
            )
            rows = cur.fetchall()
        return [
            ReminderList(list_id=r[0], title=r[1], color=r[2], is_default=bool(r[3]))
            for r in rows
        ]

    def add_list(
        self, title: str, color: Optional[str] = None, is_default: bool = False
    ) -> ReminderList:
        for existing in self.list_lists():
            if existing.title == title:
                return existing
        new_list = ReminderList(
            list_id=str(uuid.uuid4()), title=title, color=color, is_default=is_default
        )
        with self._connect() as con:
            if is_default:
                con.execute("UPDATE reminder_lists SET is_default=0")
            con.execute(
                "INSERT INTO reminder_lists (list_id, title, color, is_default) "
                "VALUES (?,?,?,?)",
                (new_list.list_id, title, color, 1 if is_default else 0),
            )
        logger.info("Created reminder list '%s'", title)
        return new_list

    def _resolve_list(self, list_name: Optional[str]) -> ReminderList:
        lists = self.list_lists()
        if list_name:
            for lst in lists:
                if lst.title == list_name:
                    return lst
        for lst in lists:
            if lst.is_default:
                return lst
        if lists:
            return lists[0]
        raise NoReminderListsError("No reminder lists available")

    # -- reminders ---------------------------------------------------------

    def list_reminders(self) -> List[Reminder]:
        with self._connect() as con:
            cur = con.cursor()
            cur.execute(_SELECT_REMINDERS + " ORDER BY r.rowid")
            rows = cur.fetchall()
        return [_row_to_reminder(r) for r in rows]

    def get_reminder(self, reminder_id: str) -> Reminder:
        with self._connect() as con:
            cur = con.cursor()
            cur.execute(_SELECT_REMINDERS + " WHERE r.reminder_id=?", (reminder_id,))
            row = cur.fetchone()
        if row is None:
            raise ReminderNotFoundError("Reminder not found")
        return _row_to_reminder(row)

    def create_reminder(
        self,
        title: str,
        list_name: Optional[str] = None,
        notes: Optional[str] = None,
        due_date=None,
        priority: int = Priority.NONE,
        recurrence: Optional[Recurrence] = None,
    ) -> Reminder:
        target = self._resolve_list(list_name)
        reminder_id = str(uuid.uuid4()).upper()
        frequency, interval, recurrence_end = _recurrence_columns(recurrence)
        with self._connect() as con:
            con.execute(
                """
                INSERT INTO reminders (
                    reminder_id, title, list_id, is_completed, due_date, notes,
                    priority, recurrence_frequency, recurrence_interval,
                    recurrence_end, created_at
                )
                VALUES (?,?,?,?,?,?,?,?,?,?,?)
            """,
                (
                    reminder_id,
                    title,
                    target.list_id,
                    0,
                    format_iso(due_date),
                    notes,
                    int(priority),
                    frequency,
                    interval,
                    recurrence_end,
                    format_iso(now_utc()),
                ),
            )
        logger.info("Created reminder %s in '%s'", reminder_id, target.title)
        self._notify()
        return self.get_reminder(reminder_id)

    def update_reminder(
        self,
        reminder_id: str,
        title=UNSET,
        list_name=UNSET,
        notes=UNSET,
        due_date=UNSET,
        priority=UNSET,
        recurrence=UNSET,
    ) -> Reminder:
        """
        Apply only the supplied fields. None clears notes, due_date and
        recurrence; an unknown list_name leaves the reminder where it is.
        """
        self.get_reminder(reminder_id)

        assignments = []
        params: list = []
        if title is not UNSET and title is not None:
            assignments.append("title=?")
            params.append(title)
        if notes is not UNSET:
            assignments.append("notes=?")
            params.append(notes)
        if due_date is not UNSET:
            assignments.append("due_date=?")
            params.append(format_iso(due_date))
        if priority is not UNSET and priority is not None:
            assignments.append("priority=?")
            params.append(int(priority))
        if recurrence is not UNSET:
            assignments.append(
                "recurrence_frequency=?, recurrence_interval=?, recurrence_end=?"
            )
            params.extend(_recurrence_columns(recurrence))
        if list_name is not UNSET and list_name is not None:
            match = [lst for lst in self.list_lists() if lst.title == list_name]
            if match:
                assignments.append("list_id=?")
                params.append(match[0].list_id)
            else:
                logger.warning(
                    "List '%s' not found; reminder %s keeps its list.",
                    list_name, reminder_id,
                )

        if assignments:
            with self._connect() as con:
                con.execute(
                    f"UPDATE reminders SET {', '.join(assignments)} WHERE reminder_id=?",
                    (*params, reminder_id),
                )
            self._notify()
        return self.get_reminder(reminder_id)

    def set_completed(self, reminder_id: str, completed: bool) -> Reminder:
        self.get_reminder(reminder_id)
        with self._connect() as con:
            con.execute(
                "UPDATE reminders SET is_completed=? WHERE reminder_id=?",
                (1 if completed else 0, reminder_id),
            )
        self._notify()
        return self.get_reminder(reminder_id)

    def delete_reminder(self, reminder_id: str) -> None:
        with self._connect() as con:
            cur = con.execute("DELETE FROM reminders WHERE reminder_id=?", (reminder_id,))
            deleted = cur.rowcount > 0
        if not deleted:
            raise ReminderNotFoundError("Reminder not found")
        logger.info("Deleted reminder %s", reminder_id)
        self._notify()

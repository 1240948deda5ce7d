"""Shared fixtures: throwaway SQLite files and a seeded local item store."""

import datetime
import os

# Keep the test run off /data before any module configures logging.
os.environ.setdefault("LOG_TO_FILE", "false")

import pytest
import pytz

from core import storage
from core.models import Reminder, ReminderSnapshot
from stores.local import LocalReminderStore


@pytest.fixture
def db_path(tmp_path) -> str:
    path = str(tmp_path / "state.sqlite3")
    storage.ensure_db(path)
    return path


@pytest.fixture
def local_store(tmp_path) -> LocalReminderStore:
    return LocalReminderStore(
        db_path=str(tmp_path / "reminders.sqlite3"), list_names=["Home", "Work"]
    )


class FakeItemStore:
    """In-memory item store whose contents tests replace between passes."""

    kind = "fake"

    def __init__(self, reminders=None):
        self.reminders = list(reminders or [])
        self.error = None
        self.calls = 0

    def list_reminders(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.reminders)

    def add_listener(self, callback):
        pass


@pytest.fixture
def item_store() -> FakeItemStore:
    return FakeItemStore()


def make_reminder(reminder_id, title="Buy milk", list_name="Home", completed=False, due=None):
    return Reminder(
        reminder_id=reminder_id,
        title=title,
        list_name=list_name,
        is_completed=completed,
        due_date=due,
    )


def seed_snapshot(db_path, reminder_id, title="Buy milk", list_name="Home", completed=False, due=None):
    snapshot = ReminderSnapshot(
        reminder_id=reminder_id,
        title=title,
        list_name=list_name,
        is_completed=completed,
        due_date=due,
    )
    storage.save_snapshot(snapshot, db_path)
    return snapshot


DUE = datetime.datetime(2026, 11, 1, 9, 30, tzinfo=pytz.UTC)

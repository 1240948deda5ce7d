"""Tests for the SQLite-backed reminders item store."""

import pytest

from core.errors import NoReminderListsError, ReminderNotFoundError
from core.models import Priority, Recurrence
from stores.local import LocalReminderStore

from conftest import DUE


class TestLists:
    """Tests for reminder lists."""

    def test_default_and_configured_lists(self, local_store):
        lists = local_store.list_lists()
        assert [lst.title for lst in lists] == ["Reminders", "Home", "Work"]
        assert [lst.is_default for lst in lists] == [True, False, False]

    def test_add_list_is_idempotent(self, local_store):
        first = local_store.add_list("Home")
        assert first.title == "Home"
        assert len(local_store.list_lists()) == 3

    def test_new_default_list(self, local_store):
        local_store.add_list("Errands", color="#FF0000", is_default=True)
        defaults = [lst.title for lst in local_store.list_lists() if lst.is_default]
        assert defaults == ["Errands"]


class TestReminders:
    """Tests for reminder CRUD."""

    def test_create_and_get(self, local_store):
        created = local_store.create_reminder(
            "Buy milk",
            list_name="Home",
            notes="2%",
            due_date=DUE,
            priority=Priority.HIGH,
            recurrence=Recurrence("weekly", 2),
        )

        fetched = local_store.get_reminder(created.reminder_id)
        assert fetched == created
        assert fetched.title == "Buy milk"
        assert fetched.list_name == "Home"
        assert fetched.is_completed is False
        assert fetched.due_date == DUE
        assert fetched.notes == "2%"
        assert fetched.priority == Priority.HIGH
        assert fetched.recurrence_rule == "Repeats every 2 weeks"

    def test_unknown_list_falls_back_to_default(self, local_store):
        reminder = local_store.create_reminder("Call mom", list_name="Nope")
        assert reminder.list_name == "Reminders"

    def test_no_lists_at_all(self, tmp_path, monkeypatch):
        monkeypatch.setattr("stores.local.DEFAULT_LIST_NAME", "")
        store = LocalReminderStore(db_path=str(tmp_path / "empty.sqlite3"), list_names=[])
        with pytest.raises(NoReminderListsError):
            store.create_reminder("Orphan")

    def test_list_preserves_insertion_order(self, local_store):
        ids = [local_store.create_reminder(t).reminder_id for t in ("one", "two", "three")]
        assert [r.reminder_id for r in local_store.list_reminders()] == ids

    def test_update_only_supplied_fields(self, local_store):
        reminder = local_store.create_reminder("Buy milk", list_name="Home", due_date=DUE, notes="n")

        updated = local_store.update_reminder(reminder.reminder_id, title="Buy bread", list_name="Work")

        assert updated.title == "Buy bread"
        assert updated.list_name == "Work"
        assert updated.due_date == DUE
        assert updated.notes == "n"

    def test_update_none_clears(self, local_store):
        reminder = local_store.create_reminder(
            "Buy milk", due_date=DUE, notes="n", recurrence=Recurrence("daily")
        )

        updated = local_store.update_reminder(
            reminder.reminder_id, due_date=None, notes=None, recurrence=None
        )

        assert updated.due_date is None
        assert updated.notes is None
        assert updated.recurrence is None

    def test_update_unknown_list_keeps_list(self, local_store):
        reminder = local_store.create_reminder("Buy milk", list_name="Home")
        updated = local_store.update_reminder(reminder.reminder_id, list_name="Nowhere")
        assert updated.list_name == "Home"

    def test_complete_and_uncomplete(self, local_store):
        reminder = local_store.create_reminder("Buy milk")
        assert local_store.set_completed(reminder.reminder_id, True).is_completed is True
        assert local_store.set_completed(reminder.reminder_id, False).is_completed is False

    def test_delete(self, local_store):
        reminder = local_store.create_reminder("Buy milk")
        local_store.delete_reminder(reminder.reminder_id)
        with pytest.raises(ReminderNotFoundError):
            local_store.get_reminder(reminder.reminder_id)
        with pytest.raises(ReminderNotFoundError):
            local_store.delete_reminder(reminder.reminder_id)

    def test_missing_reminder(self, local_store):
        with pytest.raises(ReminderNotFoundError):
            local_store.update_reminder("missing", title="x")
        with pytest.raises(ReminderNotFoundError):
            local_store.set_completed("missing", True)


class TestListeners:
    """Mutations notify change listeners."""

    def test_each_mutation_notifies(self, local_store):
        calls = []
        local_store.add_listener(lambda: calls.append(1))

        reminder = local_store.create_reminder("Buy milk")
        local_store.update_reminder(reminder.reminder_id, title="Buy bread")
        local_store.set_completed(reminder.reminder_id, True)
        local_store.delete_reminder(reminder.reminder_id)

        assert len(calls) == 4

    def test_reads_do_not_notify(self, local_store):
        calls = []
        local_store.add_listener(lambda: calls.append(1))
        local_store.list_reminders()
        local_store.list_lists()
        assert calls == []

    def test_failing_listener_does_not_break_mutation(self, local_store):
        def boom():
            raise RuntimeError("listener down")

        local_store.add_listener(boom)
        reminder = local_store.create_reminder("Buy milk")
        assert local_store.get_reminder(reminder.reminder_id).title == "Buy milk"


class TestRecurrence:
    def test_describe(self):
        assert Recurrence("daily").describe() == "Repeats daily"
        assert Recurrence("monthly", 3).describe() == "Repeats every 3 months"
        assert Recurrence("yearly", 1, DUE).describe() == "Repeats yearly until Nov 1, 2026"

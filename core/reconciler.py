# core/reconciler.py
import copy
import sqlite3
from typing import Dict, List, Optional, Set

from . import storage
from .errors import ReconcileError
from .logger import get_logger
from .models import ChangeEvent, ChangeKind, Reminder, ReminderSnapshot

logger = get_logger(__name__)


def classify_change(previous: ReminderSnapshot, current: Reminder) -> ChangeKind:
    """completed wins over updated whenever the reminder was just ticked off."""
    if not previous.is_completed and current.is_completed:
        return ChangeKind.COMPLETED
    return ChangeKind.UPDATED


class Reconciler:
    """
    Diffs the item store's live reminders against the snapshot table.

    Each call to reconcile() is one full pass: it fetches every reminder,
    writes the snapshot table to match, and returns the change events in
    item-store order with deletions appended last. Callers must not run two
    passes at once against the same database (see core.trigger).
    """

    def __init__(self, item_store, db_path: Optional[str] = None):
        self.item_store = item_store
        self.db_path = db_path

    def reconcile(self) -> List[ChangeEvent]:
        # Item store failures propagate from here before anything is written.
        current = list(self.item_store.list_reminders())

        try:
            snapshots = storage.load_snapshots(self.db_path)
        except sqlite3.Error as e:
            raise ReconcileError(f"Failed to load snapshots: {e}") from e
        stored = len(snapshots)

        events: List[ChangeEvent] = []
        seen: Set[str] = set()

        for reminder in current:
            seen.add(reminder.reminder_id)
            event = self._reconcile_one(reminder, snapshots)
            if event is None:
                continue
            self._write(event.reminder, events)
            snapshots[reminder.reminder_id] = event.reminder
            events.append(event)

        for reminder_id, snapshot in list(snapshots.items()):
            if reminder_id in seen:
                continue
            try:
                storage.delete_snapshot(reminder_id, self.db_path)
            except sqlite3.Error as e:
                raise ReconcileError(
                    f"Failed to delete snapshot {reminder_id}: {e}", events
                ) from e
            events.append(
                ChangeEvent(kind=ChangeKind.DELETED, reminder=snapshot, previous=snapshot)
            )

        logger.debug(
            "Reconciled %d reminder(s) against %d snapshot(s): %d change(s).",
            len(current), stored, len(events),
        )
        return events

    def _reconcile_one(
        self, reminder: Reminder, snapshots: Dict[str, ReminderSnapshot]
    ) -> Optional[ChangeEvent]:
        new_state = ReminderSnapshot.from_reminder(reminder)
        existing = snapshots.get(reminder.reminder_id)

        if existing is None:
            return ChangeEvent(kind=ChangeKind.CREATED, reminder=new_state)

        if existing.checksum == new_state.checksum:
            return None

        return ChangeEvent(
            kind=classify_change(existing, reminder),
            reminder=new_state,
            previous=copy.copy(existing),
        )

    def _write(self, snapshot: ReminderSnapshot, committed: List[ChangeEvent]) -> None:
        try:
            storage.save_snapshot(snapshot, self.db_path)
        except sqlite3.Error as e:
            raise ReconcileError(
                f"Failed to save snapshot {snapshot.reminder_id}: {e}", committed
            ) from e

# core/watcher.py
import os
import random
import threading
from typing import List, Optional

from .errors import ReconcileError
from .logger import get_logger
from .models import ChangeEvent
from .reconciler import Reconciler
from .trigger import SyncTrigger
from .webhooks import WebhookDispatcher

logger = get_logger(__name__)

POLL_SECONDS = int(os.getenv("POLL_SECONDS", "60"))


def jittered(seconds: float) -> float:
    base = max(1.0, float(seconds))
    return base + random.uniform(-0.1 * base, 0.1 * base)


class ReminderWatcher:
    """
    Runs reconciliation passes and hands their events to the dispatcher.

    Passes are triggered by a background poll thread and by change
    notifications from the item store (notify_changed). Both go through one
    SyncTrigger: poll ticks coalesce, notifications queue one rerun.
    """

    def __init__(
        self,
        reconciler: Reconciler,
        dispatcher: WebhookDispatcher,
        poll_seconds: float = POLL_SECONDS,
    ):
        self.reconciler = reconciler
        self.dispatcher = dispatcher
        self.poll_seconds = poll_seconds
        self.trigger = SyncTrigger(self.run_pass)
        self._wake = threading.Event()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_pass(self) -> List[ChangeEvent]:
        try:
            events = self.reconciler.reconcile()
        except ReconcileError as e:
            if e.partial_events:
                logger.warning(
                    "Reconciliation aborted after %d committed change(s); dispatching them.",
                    len(e.partial_events),
                )
                self.dispatcher.dispatch(e.partial_events)
            raise

        if events:
            logger.info("Detected %d reminder change(s)", len(events))
            self.dispatcher.dispatch(events)
        return events

    def notify_changed(self) -> None:
        """Item store change callback; wakes the poll thread without blocking."""
        self._wake.set()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name="reminder-watcher", daemon=True
        )
        self._thread.start()
        logger.info("ReminderWatcher started; polling every %ss.", self.poll_seconds)

    def stop(self, timeout: Optional[float] = 10) -> None:
        self._stop.set()
        self._wake.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None
            logger.info("ReminderWatcher stopped")

    def _loop(self) -> None:
        # Initial sync so snapshots reflect the store before the first tick.
        self._safe(self.trigger.request)

        while not self._stop.is_set():
            woke = self._wake.wait(timeout=jittered(self.poll_seconds))
            if self._stop.is_set():
                break
            if woke:
                self._wake.clear()
                logger.info("Item store change received - syncing reminders")
                self._safe(self.trigger.request)
            else:
                self._safe(self.trigger.poll)

    def _safe(self, fire) -> None:
        try:
            fire()
        except Exception as e:
            logger.exception("Reconciliation pass failed: %s", e)

# stores/remote.py
import hashlib
import os
from typing import Any, Dict, List, Optional

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from core.errors import (
    AccessDeniedError,
    ItemStoreError,
    ReadOnlyStoreError,
    ReminderNotFoundError,
)
from core.logger import get_logger
from core.models import Priority, Recurrence, Reminder, ReminderList, parse_iso

logger = get_logger(__name__)

REMOTE_FEED_URL = os.getenv("REMOTE_FEED_URL", "").strip()
REMOTE_FEED_TOKEN = os.getenv("REMOTE_FEED_TOKEN", "").strip()
REMOTE_TIMEOUT = float(os.getenv("REMOTE_TIMEOUT", "30"))
REMOTE_MAX_ATTEMPTS = int(os.getenv("REMOTE_MAX_ATTEMPTS", "5"))
USER_AGENT = os.getenv("REMOTE_USER_AGENT", "reminders-server/1.0")


class TransientFeedError(ItemStoreError):
    """Retryable failure: transport error or 5xx from the feed."""


def _parse_recurrence(data: Any) -> Optional[Recurrence]:
    if not isinstance(data, dict) or not data.get("frequency"):
        return None
    return Recurrence(
        frequency=str(data["frequency"]).lower(),
        interval=int(data.get("interval") or 1),
        end_date=parse_iso(data.get("endDate")),
    )


def parse_reminder(data: Dict[str, Any]) -> Reminder:
    reminder_id = data.get("id") or data.get("reminderID")
    if not reminder_id:
        raise ItemStoreError(f"Feed entry without id: {data!r}")
    try:
        priority = int(data.get("priority") or Priority.NONE)
    except (TypeError, ValueError):
        priority = Priority.NONE
    try:
        return Reminder(
            reminder_id=str(reminder_id),
            title=str(data.get("title") or ""),
            list_name=str(data.get("listName") or ""),
            is_completed=bool(data.get("isCompleted", False)),
            due_date=parse_iso(data.get("dueDate")),
            notes=data.get("notes"),
            priority=priority,
            recurrence=_parse_recurrence(data.get("recurrence")),
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise ItemStoreError(f"Malformed feed entry {reminder_id!r}: {e}") from e


class RemoteReminderStore:
    """
    Read-only item store polling a JSON array of reminders over HTTP.

    401/403 surface as AccessDeniedError immediately; transport errors and
    5xx responses are retried with jittered exponential backoff.
    """

    kind = "remote"

    def __init__(
        self,
        feed_url: Optional[str] = None,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = REMOTE_TIMEOUT,
    ):
        self.feed_url = feed_url or REMOTE_FEED_URL
        if not self.feed_url:
            raise ValueError("REMOTE_FEED_URL must be set for the remote item store.")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})
        token = token if token is not None else REMOTE_FEED_TOKEN
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})

    def add_listener(self, callback) -> None:
        # The feed has no change notifications; polling covers it.
        pass

    @retry(
        retry=retry_if_exception_type(TransientFeedError),
        wait=wait_exponential_jitter(initial=1, max=30),
        stop=stop_after_attempt(REMOTE_MAX_ATTEMPTS),
        reraise=True,
    )
    def _fetch(self) -> Any:
        try:
            r = self.session.get(self.feed_url, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransientFeedError(f"Feed request failed: {e}") from e

        if r.status_code in (401, 403):
            raise AccessDeniedError("Reminders access denied")
        if r.status_code >= 500:
            raise TransientFeedError(f"Feed returned {r.status_code}")
        if r.status_code >= 400:
            raise ItemStoreError(f"Feed returned {r.status_code}")

        try:
            return r.json()
        except ValueError as e:
            raise ItemStoreError(f"Feed returned invalid JSON: {e}") from e

    def list_reminders(self) -> List[Reminder]:
        data = self._fetch()
        if isinstance(data, dict):
            data = data.get("reminders")
        if not isinstance(data, list):
            raise ItemStoreError("Feed must be a JSON array of reminders.")
        reminders = [parse_reminder(entry) for entry in data if isinstance(entry, dict)]
        logger.debug("Fetched %d reminder(s) from %s", len(reminders), self.feed_url)
        return reminders

    def get_reminder(self, reminder_id: str) -> Reminder:
        for reminder in self.list_reminders():
            if reminder.reminder_id == reminder_id:
                return reminder
        raise ReminderNotFoundError("Reminder not found")

    def list_lists(self) -> List[ReminderList]:
        names: List[str] = []
        for reminder in self.list_reminders():
            if reminder.list_name and reminder.list_name not in names:
                names.append(reminder.list_name)
        return [
            ReminderList(
                list_id=hashlib.sha1(name.encode("utf-8")).hexdigest(),
                title=name,
                is_default=(i == 0),
            )
            for i, name in enumerate(names)
        ]

    def _read_only(self, *args, **kwargs):
        raise ReadOnlyStoreError("The remote reminders feed is read-only")

    create_reminder = _read_only
    update_reminder = _read_only
    set_completed = _read_only
    delete_reminder = _read_only

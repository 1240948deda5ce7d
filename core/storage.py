# core/storage.py
import json
import os
import sqlite3
import uuid
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional

from pydantic import AnyHttpUrl, TypeAdapter

from .errors import InvalidWebhookError
from .logger import get_logger
from .models import (
    ALL_CHANGE_KINDS,
    ReminderSnapshot,
    Webhook,
    format_iso,
    now_utc,
    parse_iso,
)

logger = get_logger(__name__)

DB_PATH = os.getenv("DB_PATH", "/data/reminders_state.sqlite3")


@contextmanager
def _connect(db_path: Optional[str] = None):
    path = db_path or DB_PATH
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    con = sqlite3.connect(path)
    try:
        yield con
        con.commit()
    finally:
        con.close()


def now_utc_iso() -> str:
    return format_iso(now_utc())


def ensure_db(db_path: Optional[str] = None):
    with _connect(db_path) as con:
        cur = con.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS reminder_snapshots (
                reminder_id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                list_name TEXT NOT NULL,
                is_completed INTEGER NOT NULL,
                due_date TEXT,
                checksum TEXT NOT NULL,
                last_seen TEXT
            )
        """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS webhooks (
                id TEXT PRIMARY KEY,
                url TEXT NOT NULL,
                secret TEXT,
                reminder_id TEXT,
                list_name TEXT,
                events TEXT NOT NULL,   -- JSON array of change kinds
                active INTEGER NOT NULL DEFAULT 1,
                created_at TEXT
            )
        """
        )


# ---------------------------------------------------------------------------
# Snapshots (written only by the reconciler)
# ---------------------------------------------------------------------------


def load_snapshots(db_path: Optional[str] = None) -> Dict[str, ReminderSnapshot]:
    """
    Return mapping reminder_id -> ReminderSnapshot for every stored row.
    """
    with _connect(db_path) as con:
        cur = con.cursor()
        cur.execute(
            """
            SELECT reminder_id, title, list_name, is_completed, due_date,
                   checksum, last_seen
            FROM reminder_snapshots
            ORDER BY reminder_id
        """
        )
        rows = cur.fetchall()

    out: Dict[str, ReminderSnapshot] = {}
    for row in rows:
        reminder_id, title, list_name, is_completed, due_date, checksum, last_seen = row
        out[reminder_id] = ReminderSnapshot(
            reminder_id=reminder_id,
            title=title,
            list_name=list_name,
            is_completed=bool(is_completed),
            due_date=parse_iso(due_date),
            checksum=checksum,
            last_seen=parse_iso(last_seen),
        )
    return out


def save_snapshot(snapshot: ReminderSnapshot, db_path: Optional[str] = None) -> None:
    """
    Insert or overwrite one snapshot row in its own transaction.
    The checksum is recomputed and last_seen refreshed before writing.
    """
    snapshot.refresh_checksum()
    snapshot.last_seen = now_utc()
    with _connect(db_path) as con:
        con.execute(
            """
            INSERT INTO reminder_snapshots (
                reminder_id, title, list_name, is_completed, due_date,
                checksum, last_seen
            )
            VALUES (?,?,?,?,?,?,?)
            ON CONFLICT(reminder_id) DO UPDATE SET
                title=excluded.title,
                list_name=excluded.list_name,
                is_completed=excluded.is_completed,
                due_date=excluded.due_date,
                checksum=excluded.checksum,
                last_seen=excluded.last_seen
        """,
            (
                snapshot.reminder_id,
                snapshot.title,
                snapshot.list_name,
                1 if snapshot.is_completed else 0,
                format_iso(snapshot.due_date),
                snapshot.checksum,
                format_iso(snapshot.last_seen),
            ),
        )


def delete_snapshot(reminder_id: str, db_path: Optional[str] = None) -> None:
    with _connect(db_path) as con:
        con.execute(
            "DELETE FROM reminder_snapshots WHERE reminder_id=?", (reminder_id,)
        )


# ---------------------------------------------------------------------------
# Webhook registry (written only by the API layer)
# ---------------------------------------------------------------------------

_WEBHOOK_COLUMNS = "id, url, secret, reminder_id, list_name, events, active, created_at"


def _row_to_webhook(row) -> Webhook:
    webhook_id, url, secret, reminder_id, list_name, events, active, created_at = row
    return Webhook(
        webhook_id=webhook_id,
        url=url,
        secret=secret,
        reminder_id=reminder_id,
        list_name=list_name,
        events=json.loads(events) if events else [],
        active=bool(active),
        created_at=parse_iso(created_at),
    )


_HTTP_URL = TypeAdapter(AnyHttpUrl)


def validate_webhook_url(url: str) -> str:
    """Return the stripped URL as given; it must be an absolute http(s) URL."""
    url = (url or "").strip()
    try:
        _HTTP_URL.validate_python(url)
    except ValueError as e:
        # pydantic ValidationError is a ValueError subclass.
        raise InvalidWebhookError(f"Invalid URL: {url!r}") from e
    return url


def validate_events(events: Optional[Iterable[str]]) -> List[str]:
    if events is None:
        return list(ALL_CHANGE_KINDS)
    cleaned: List[str] = []
    for ev in events:
        ev = str(ev).strip().lower()
        if ev not in ALL_CHANGE_KINDS:
            raise InvalidWebhookError(
                f"Unknown event {ev!r}; expected one of {', '.join(ALL_CHANGE_KINDS)}"
            )
        if ev not in cleaned:
            cleaned.append(ev)
    if not cleaned:
        raise InvalidWebhookError("At least one event must be subscribed.")
    return cleaned


def create_webhook(
    url: str,
    secret: Optional[str] = None,
    reminder_id: Optional[str] = None,
    list_name: Optional[str] = None,
    events: Optional[Iterable[str]] = None,
    db_path: Optional[str] = None,
) -> Webhook:
    webhook = Webhook(
        webhook_id=str(uuid.uuid4()),
        url=validate_webhook_url(url),
        secret=secret or None,
        reminder_id=reminder_id,
        list_name=list_name,
        events=validate_events(events),
        active=True,
        created_at=now_utc(),
    )
    with _connect(db_path) as con:
        con.execute(
            f"INSERT INTO webhooks ({_WEBHOOK_COLUMNS}) VALUES (?,?,?,?,?,?,?,?)",
            (
                webhook.webhook_id,
                webhook.url,
                webhook.secret,
                webhook.reminder_id,
                webhook.list_name,
                json.dumps(webhook.events),
                1,
                format_iso(webhook.created_at),
            ),
        )
    logger.info("Registered webhook %s for %s", webhook.webhook_id, webhook.url)
    return webhook


def list_webhooks(db_path: Optional[str] = None) -> List[Webhook]:
    with _connect(db_path) as con:
        cur = con.cursor()
        cur.execute(
            f"SELECT {_WEBHOOK_COLUMNS} FROM webhooks ORDER BY created_at, id"
        )
        rows = cur.fetchall()
    return [_row_to_webhook(r) for r in rows]


def list_active_webhooks(db_path: Optional[str] = None) -> List[Webhook]:
    with _connect(db_path) as con:
        cur = con.cursor()
        cur.execute(
            f"SELECT {_WEBHOOK_COLUMNS} FROM webhooks WHERE active=1 "
            "ORDER BY created_at, id"
        )
        rows = cur.fetchall()
    return [_row_to_webhook(r) for r in rows]


def get_webhook(webhook_id: str, db_path: Optional[str] = None) -> Optional[Webhook]:
    with _connect(db_path) as con:
        cur = con.cursor()
        cur.execute(
            f"SELECT {_WEBHOOK_COLUMNS} FROM webhooks WHERE id=?", (webhook_id,)
        )
        row = cur.fetchone()
    return _row_to_webhook(row) if row else None


def delete_webhook(webhook_id: str, db_path: Optional[str] = None) -> bool:
    with _connect(db_path) as con:
        cur = con.execute("DELETE FROM webhooks WHERE id=?", (webhook_id,))
        deleted = cur.rowcount > 0
    if deleted:
        logger.info("Deleted webhook %s", webhook_id)
    return deleted


def toggle_webhook(webhook_id: str, db_path: Optional[str] = None) -> Optional[Webhook]:
    with _connect(db_path) as con:
        cur = con.execute(
            "UPDATE webhooks SET active = 1 - active WHERE id=?", (webhook_id,)
        )
        if cur.rowcount == 0:
            return None
    webhook = get_webhook(webhook_id, db_path)
    logger.info(
        "Webhook %s is now %s",
        webhook_id,
        "active" if webhook and webhook.active else "inactive",
    )
    return webhook

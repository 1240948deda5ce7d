# core/webhooks.py
import hashlib
import hmac
import json
import os
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from . import storage
from .logger import get_logger
from .models import ChangeEvent, ReminderSnapshot, Webhook, format_iso, now_utc

logger = get_logger(__name__)

WEBHOOK_TIMEOUT = float(os.getenv("WEBHOOK_TIMEOUT", "10"))
WEBHOOK_MAX_WORKERS = int(os.getenv("WEBHOOK_MAX_WORKERS", "8"))
# "legacy" keeps the djb2 signature existing subscribers verify against.
# "hmac-sha256" is a real keyed MAC; switching breaks those subscribers.
WEBHOOK_SIGNATURE_SCHEME = os.getenv("WEBHOOK_SIGNATURE_SCHEME", "legacy").strip().lower()

EVENT_HEADER = "X-Webhook-Event"
SIGNATURE_HEADER = "X-Webhook-Signature"
TEST_EVENT = "webhook.test"

_MASK64 = (1 << 64) - 1


def legacy_signature(secret: str, body: bytes) -> str:
    """
    djb2 rolling hash of secret + body, 64-bit wrapping.

    Despite the "sha256=" prefix this is not a MAC; it is kept for
    compatibility with receivers of the original server.
    """
    h = 5381
    for b in secret.encode("utf-8") + body:
        h = ((h << 5) + h + b) & _MASK64
    return f"sha256={h:016x}"


def hmac_signature(secret: str, body: bytes) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


SIGNERS = {
    "legacy": legacy_signature,
    "hmac-sha256": hmac_signature,
}


def build_payload(
    event: str,
    reminder: ReminderSnapshot,
    previous: Optional[ReminderSnapshot] = None,
) -> Dict[str, Any]:
    return {
        "event": event,
        "timestamp": format_iso(now_utc()),
        "reminder": reminder.to_payload(),
        "previousState": previous.to_payload() if previous else None,
    }


def serialize_payload(payload: Dict[str, Any]) -> bytes:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _test_snapshot() -> ReminderSnapshot:
    return ReminderSnapshot(
        reminder_id="test-reminder-id",
        title="Test Reminder",
        list_name="Test List",
        is_completed=False,
        due_date=now_utc(),
    )


class WebhookDispatcher:
    """
    Best-effort fan-out of change events to the active webhook subscriptions.

    One POST per matching (subscription, event); 2xx is success, anything else
    is logged and dropped. Subscriptions are served concurrently, each one
    receiving its events in order. dispatch() never raises.
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = WEBHOOK_TIMEOUT,
        max_workers: int = WEBHOOK_MAX_WORKERS,
        signature_scheme: str = WEBHOOK_SIGNATURE_SCHEME,
    ):
        if signature_scheme not in SIGNERS:
            raise ValueError(
                f"Unknown WEBHOOK_SIGNATURE_SCHEME {signature_scheme!r}; "
                f"expected one of {', '.join(SIGNERS)}"
            )
        self.db_path = db_path
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_workers = max(1, max_workers)
        self._sign = SIGNERS[signature_scheme]

    def dispatch(self, events: Sequence[ChangeEvent]) -> None:
        if not events:
            return

        try:
            webhooks = storage.list_active_webhooks(self.db_path)
        except sqlite3.Error as e:
            logger.error("Could not load webhooks; dropping %d event(s): %s", len(events), e)
            return

        if not webhooks:
            logger.debug("No active webhooks to dispatch")
            return

        plan: List[Tuple[Webhook, List[ChangeEvent]]] = []
        for webhook in webhooks:
            matching = [ev for ev in events if webhook.matches(ev)]
            if matching:
                plan.append((webhook, matching))

        if not plan:
            logger.debug("No webhook matched %d event(s)", len(events))
            return

        if len(plan) == 1:
            try:
                self._deliver_all(*plan[0])
            except Exception:
                logger.exception("Unexpected error in webhook delivery")
            return

        with ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(plan)),
            thread_name_prefix="webhook",
        ) as pool:
            futures = [pool.submit(self._deliver_all, wh, evs) for wh, evs in plan]
            for fut in futures:
                try:
                    fut.result()
                except Exception:
                    logger.exception("Unexpected error in webhook delivery worker")

    def send_test(self, webhook: Webhook) -> bool:
        payload = build_payload(TEST_EVENT, _test_snapshot())
        return self.deliver(webhook, payload)

    def _deliver_all(self, webhook: Webhook, events: List[ChangeEvent]) -> None:
        for event in events:
            payload = build_payload(event.event_name, event.reminder, event.previous)
            self.deliver(webhook, payload)

    def deliver(self, webhook: Webhook, payload: Dict[str, Any]) -> bool:
        """Single attempt; returns True on a 2xx response."""
        body = serialize_payload(payload)
        event = payload["event"]
        headers = {
            "Content-Type": "application/json",
            EVENT_HEADER: event,
        }
        if webhook.secret:
            headers[SIGNATURE_HEADER] = self._sign(webhook.secret, body)

        try:
            r = self.session.post(webhook.url, data=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Webhook dispatch error: %s - %s: %s", webhook.url, event, e)
            return False

        if 200 <= r.status_code < 300:
            logger.info("Webhook delivered: %s - %s", webhook.url, event)
            return True

        logger.warning("Webhook failed: %s - %s - Status %d", webhook.url, event, r.status_code)
        return False

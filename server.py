import os
import threading
from typing import Optional

from core.logger import get_logger
from core import storage
from core.reconciler import Reconciler
from core.watcher import ReminderWatcher
from core.webhooks import WebhookDispatcher
from stores import build_store

logger = get_logger(__name__)

MODE = os.getenv("MODE", "serve").lower()  # "serve", "daemon" or "once"
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "9201"))


def build_watcher(store, db_path: Optional[str] = None) -> ReminderWatcher:
    """Wire store -> reconciler -> dispatcher and subscribe to store changes."""
    reconciler = Reconciler(store, db_path=db_path)
    dispatcher = WebhookDispatcher(db_path=db_path)
    watcher = ReminderWatcher(reconciler, dispatcher)
    store.add_listener(watcher.notify_changed)
    return watcher


def run_once() -> int:
    storage.ensure_db()
    store = build_store()
    watcher = build_watcher(store)
    try:
        events = watcher.run_pass()
    except Exception as e:
        logger.exception("Reconciliation pass failed: %s", e)
        return 1
    logger.info("Single pass finished with %d change(s).", len(events))
    return 0


def run_daemon() -> None:
    storage.ensure_db()
    store = build_store()
    watcher = build_watcher(store)
    logger.info("Starting daemon with %s item store.", store.kind)
    watcher.start()
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down.")
    finally:
        watcher.stop()


def run_server() -> None:
    import uvicorn

    from api.app import create_app

    store = build_store()
    watcher = build_watcher(store)
    app = create_app(store, dispatcher=watcher.dispatcher, watcher=watcher)
    logger.info("Serving reminders API on %s:%d (%s item store).", HOST, PORT, store.kind)
    # log_config=None keeps uvicorn on our root handlers.
    uvicorn.run(app, host=HOST, port=PORT, log_config=None)


if __name__ == "__main__":
    try:
        if MODE == "once":
            raise SystemExit(run_once())
        elif MODE == "daemon":
            run_daemon()
        else:
            run_server()
    except SystemExit:
        raise
    except Exception as e:
        logger.exception("Fatal server error: %s", e)
        raise SystemExit(2)

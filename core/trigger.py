# core/trigger.py
import threading
from typing import Any, Callable

from .logger import get_logger

logger = get_logger(__name__)


class SyncTrigger:
    """
    Serialises reconciliation passes so that two never overlap.

    poll() is for timer ticks: a tick that lands while a pass is running is
    dropped. request() is for explicit triggers (store change notifications,
    on-demand syncs): it schedules one more pass after the running one, and
    any number of requests during a pass collapse into that single rerun.

    Both return True when the calling thread ran the pass(es) itself.
    Errors from the pass propagate to that thread.
    """

    def __init__(self, run_pass: Callable[[], Any]):
        self._run_pass = run_pass
        self._lock = threading.Lock()
        self._running = False
        self._pending = False
        self.last_result: Any = None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    def poll(self) -> bool:
        return self._fire(queue=False)

    def request(self) -> bool:
        return self._fire(queue=True)

    def _fire(self, queue: bool) -> bool:
        with self._lock:
            if self._running:
                if queue:
                    self._pending = True
                    logger.debug("Pass in flight; queued one more.")
                else:
                    logger.debug("Pass in flight; dropping poll tick.")
                return False
            self._running = True

        try:
            while True:
                self.last_result = self._run_pass()
                with self._lock:
                    if not self._pending:
                        self._running = False
                        return True
                    self._pending = False
        except BaseException:
            with self._lock:
                self._running = False
                self._pending = False
            raise

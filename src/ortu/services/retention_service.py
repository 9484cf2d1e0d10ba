import logging
import threading
from typing import Optional

from ortu.database.history_manager import HistoryManager

logger = logging.getLogger(__name__)


class RetentionService:
    """Hourly sweep deleting unpinned items older than the retention window.

    A missed tick is not made up; the next sweep uses an absolute cutoff.
    """

    def __init__(self, store: HistoryManager, interval: float = 3600.0) -> None:
        self.store = store
        self.interval = interval
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        with self._lock:
            if self._thread is not None:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run, name="ortu-retention", daemon=True)
            self._thread.start()
        logger.info("Retention sweep scheduled every %ss", self.interval)

    def stop(self) -> None:
        with self._lock:
            thread, self._thread = self._thread, None
            self._stop_event.set()
        if thread is not None:
            thread.join(timeout=1.0)

    def sweep_now(self) -> int:
        return self.store.prune_expired()

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self.sweep_now()
            except Exception:
                logger.exception("Retention sweep failed")

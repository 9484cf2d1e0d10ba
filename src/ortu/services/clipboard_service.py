"""Clipboard capture loop.

A single daemon thread samples the clipboard every ``poll_interval``
seconds, skips repeats and blanks, drops oversized snapshots, and stores
everything else with a guessed category.
"""

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from ortu.clipboard import ClipboardReader
from ortu.config import MAX_CONTENT_BYTES
from ortu.database.history_manager import HistoryManager, format_timestamp
from ortu.services.classifier import guess_category

logger = logging.getLogger(__name__)


class CaptureOutcome(enum.Enum):
    READ_FAILED = "read_failed"
    UNCHANGED = "unchanged"
    OVERSIZED = "oversized"
    ACCEPTED = "accepted"
    STORE_FAILED = "store_failed"


@dataclass(frozen=True)
class CapturedClipboard:
    """A snapshot that was accepted and written to the history."""

    item_id: int
    content: str
    category: Optional[str]
    timestamp: str


class ClipboardService:

    def __init__(
        self,
        reader: ClipboardReader,
        store: HistoryManager,
        *,
        poll_interval: float = 0.5,
        max_content_bytes: int = MAX_CONTENT_BYTES,
        on_capture: Optional[Callable[[CapturedClipboard], None]] = None,
        auto_register: bool = False,
    ) -> None:
        self.reader = reader
        self.store = store
        self.poll_interval = poll_interval
        self.max_content_bytes = max_content_bytes
        self._on_capture = on_capture or self._default_handler
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._poll_thread: Optional[threading.Thread] = None
        self._is_running = False
        # Only the polling thread touches this after start().
        self.last_content: Optional[str] = None

        if auto_register:
            self.start()

    # ---------------------------------------------------------------------
    # Lifecycle management
    # ---------------------------------------------------------------------
    @property
    def is_running(self) -> bool:
        return self._is_running

    def start(self) -> None:
        with self._lock:
            if self._is_running:
                logger.debug("ClipboardService already running")
                return

            logger.info(
                "Starting clipboard capture (interval=%ss)", self.poll_interval)
            self._stop_event.clear()
            self._is_running = True
            self._poll_thread = threading.Thread(
                target=self._poll_loop, name="ortu-capture", daemon=True)
            self._poll_thread.start()

    def stop(self) -> None:
        with self._lock:
            if not self._is_running:
                return

            logger.info("Stopping clipboard capture")
            self._is_running = False
            self._stop_event.set()

        if self._poll_thread is not None:
            self._poll_thread.join(timeout=max(1.0, self.poll_interval * 2))
            self._poll_thread = None

    def run_forever(self) -> None:
        try:
            if not self._is_running:
                self.start()

            while not self._stop_event.wait(timeout=self.poll_interval):
                continue
        except KeyboardInterrupt:
            logger.info("ClipboardService interrupted by user")
        finally:
            self.stop()

    # ---------------------------------------------------------------------
    # Polling
    # ---------------------------------------------------------------------
    def _poll_loop(self) -> None:
        # Sleep first so start-up does not spin on the first sample.
        while not self._stop_event.wait(self.poll_interval):
            try:
                self.poll_once()
            except Exception:
                logger.exception("Unexpected error in clipboard capture")

    def poll_once(self) -> CaptureOutcome:
        """Sample the clipboard once and act on what was found."""
        try:
            text = self.reader.read_text()
        except Exception as exc:
            logger.debug("Clipboard read skipped: %s", exc)
            return CaptureOutcome.READ_FAILED

        if text == self.last_content or not text.strip():
            return CaptureOutcome.UNCHANGED

        size = len(text.encode("utf-8"))
        if size > self.max_content_bytes:
            logger.warning(
                "Clipboard content too large (%d bytes), ignoring", size)
            self.last_content = text
            return CaptureOutcome.OVERSIZED

        self.last_content = text
        try:
            category = guess_category(text, self.store)
            item_id = self.store.insert_item(text, category)
            stored = self.store.get_item(item_id)
        except Exception:
            logger.exception("Failed to save clipboard item")
            return CaptureOutcome.STORE_FAILED

        if stored is None:
            # removed by another caller before it could be read back
            return CaptureOutcome.ACCEPTED

        captured = CapturedClipboard(
            item_id=item_id,
            content=text,
            category=category,
            timestamp=format_timestamp(stored.created_at),
        )
        logger.info("Clipboard copied: item=%d category=%s",
                    item_id, category or "-")
        try:
            self._on_capture(captured)
        except Exception:
            logger.exception("Error while calling on_capture")
        return CaptureOutcome.ACCEPTED

    @staticmethod
    def _default_handler(captured: CapturedClipboard) -> None:
        logger.debug("Captured %r", captured.content[:60])

    # ---------------------------------------------------------------------
    # Context manager helpers
    # ---------------------------------------------------------------------
    def __enter__(self) -> "ClipboardService":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

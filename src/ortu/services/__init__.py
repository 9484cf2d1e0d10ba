"""Service layer for Ortu."""

from .clipboard_service import CaptureOutcome, CapturedClipboard, ClipboardService
from .history_service import HistoryService
from .retention_service import RetentionService

__all__ = [
    "CaptureOutcome",
    "CapturedClipboard",
    "ClipboardService",
    "HistoryService",
    "RetentionService",
]

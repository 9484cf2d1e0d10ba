import time

import pywintypes
import win32clipboard as wc

from ortu.clipboard.base import ClipboardReader
from ortu.errors import ClipboardReadError


class WindowsClipboard(ClipboardReader):
    def __init__(self, open_attempts: int = 3, retry_delay: float = 0.05):
        self.open_attempts = open_attempts
        self.retry_delay = retry_delay

    def ensure_available(self) -> None:
        # pywin32 imported at module load; nothing else to probe.
        return None

    def read_text(self) -> str:
        opened = False
        for _ in range(self.open_attempts):
            try:
                wc.OpenClipboard()
                opened = True
                break
            except pywintypes.error:
                time.sleep(self.retry_delay)

        if not opened:
            raise ClipboardReadError("clipboard is locked by another process")

        try:
            if not wc.IsClipboardFormatAvailable(wc.CF_UNICODETEXT):
                raise ClipboardReadError("clipboard holds no text")
            try:
                text = wc.GetClipboardData(wc.CF_UNICODETEXT)
            except (pywintypes.error, TypeError) as exc:
                raise ClipboardReadError(str(exc)) from exc
        finally:
            try:
                wc.CloseClipboard()
            except pywintypes.error:
                pass

        if text is None:
            raise ClipboardReadError("clipboard holds no text")
        return text

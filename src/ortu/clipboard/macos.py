from AppKit import NSPasteboard, NSPasteboardTypeString

from ortu.clipboard.base import ClipboardReader
from ortu.errors import ClipboardReadError, ClipboardUnavailableError


class MacOSClipboard(ClipboardReader):

    def ensure_available(self) -> None:
        if NSPasteboard.generalPasteboard() is None:
            raise ClipboardUnavailableError("general pasteboard is unavailable")

    def read_text(self) -> str:
        pasteboard = NSPasteboard.generalPasteboard()
        types = pasteboard.types() or []
        if NSPasteboardTypeString not in types:
            raise ClipboardReadError("pasteboard holds no text")

        text = pasteboard.stringForType_(NSPasteboardTypeString)
        if text is None:
            raise ClipboardReadError("pasteboard holds no text")
        return str(text)

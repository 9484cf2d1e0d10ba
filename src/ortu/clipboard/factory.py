import platform
from typing import Type

from ortu.clipboard.base import ClipboardReader
from ortu.errors import ClipboardUnavailableError


def get_clipboard_class() -> Type[ClipboardReader]:
    system = platform.system()

    if system == "Windows":
        from ortu.clipboard.windows import WindowsClipboard
        return WindowsClipboard
    elif system == "Linux":
        from ortu.clipboard.linux import LinuxClipboard
        return LinuxClipboard
    elif system == "Darwin":
        from ortu.clipboard.macos import MacOSClipboard
        return MacOSClipboard
    else:
        raise ClipboardUnavailableError(
            f"Platform '{system}' is not supported")


def get_clipboard_reader() -> ClipboardReader:
    reader = get_clipboard_class()()
    reader.ensure_available()
    return reader

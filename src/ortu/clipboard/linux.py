import os
import shutil
import subprocess
from typing import List, Optional

from ortu.clipboard.base import ClipboardReader
from ortu.errors import ClipboardReadError, ClipboardUnavailableError


class LinuxClipboard(ClipboardReader):
    _TEXT_TARGETS = {
        "text/plain",
        "text/plain;charset=utf-8",
        "text/plain;charset=utf8",
        "utf8_string",
        "string",
    }

    def __init__(self, timeout: float = 1.5):
        self.timeout = timeout

    def ensure_available(self) -> None:
        if self._wayland_available() or shutil.which("xclip") or shutil.which("xsel"):
            return
        raise ClipboardUnavailableError(
            "no clipboard tool found; install wl-clipboard, xclip or xsel")

    def read_text(self) -> str:
        strategies = (
            self._from_wayland,
            self._from_xclip,
            self._from_xsel,
        )

        for strategy in strategies:
            data = strategy()
            if data is not None:
                return data.decode("utf-8", errors="ignore")

        raise ClipboardReadError("clipboard holds no readable text")

    def _wayland_available(self) -> bool:
        return bool(os.environ.get("WAYLAND_DISPLAY")) and bool(shutil.which("wl-paste"))

    def _from_wayland(self) -> Optional[bytes]:
        if not self._wayland_available():
            return None

        types = self._parse_type_list(
            self._run_command(["wl-paste", "--list-types"])
        )
        if types and not self._has_text_target(types):
            return None

        return self._run_command(["wl-paste", "--no-newline"])

    def _from_xclip(self) -> Optional[bytes]:
        if not shutil.which("xclip"):
            return None

        types = self._parse_type_list(
            self._run_command(
                ["xclip", "-selection", "clipboard", "-t", "TARGETS", "-o"])
        )
        if types and not self._has_text_target(types):
            return None

        return self._run_command(["xclip", "-selection", "clipboard", "-o"])

    def _from_xsel(self) -> Optional[bytes]:
        if not shutil.which("xsel"):
            return None
        return self._run_command(["xsel", "--clipboard", "--output"])

    def _has_text_target(self, types: List[str]) -> bool:
        return any(target.lower() in self._TEXT_TARGETS for target in types)

    def _parse_type_list(self, data: Optional[bytes]) -> List[str]:
        if not data:
            return []
        text = data.decode("utf-8", errors="ignore")
        return [line.strip() for line in text.splitlines() if line.strip()]

    def _run_command(self, command: List[str]) -> Optional[bytes]:
        try:
            result = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=True,
                timeout=self.timeout,
            )
            return result.stdout
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError):
            return None

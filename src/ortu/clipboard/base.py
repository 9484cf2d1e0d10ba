from abc import ABC, abstractmethod


class ClipboardReader(ABC):
    """Text-only view of the system clipboard.

    ``read_text`` raises :class:`ortu.errors.ClipboardReadError` when the
    clipboard is locked, empty of text, or the backend fails transiently.
    """

    @abstractmethod
    def read_text(self) -> str:
        pass

    @abstractmethod
    def ensure_available(self) -> None:
        """Raise ClipboardUnavailableError if this backend cannot work here."""
        pass

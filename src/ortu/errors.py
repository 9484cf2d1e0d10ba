"""Exception hierarchy shared by the Ortu packages."""


class OrtuError(Exception):
    """Base class for every error raised by Ortu itself."""


class StoreError(OrtuError):
    """The history database or a file it reads/writes failed."""


class NotFoundError(StoreError):
    """An operation referenced an item or group that does not exist."""


class ClipboardReadError(OrtuError):
    """The clipboard could not be read on this tick (locked, non-text, ...)."""


class ClipboardUnavailableError(OrtuError):
    """No usable clipboard backend exists on this machine."""


class CommandError(OrtuError):
    """Failure reported to command-surface callers as a plain message."""

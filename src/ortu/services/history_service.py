"""Command surface used by the GUI shell, the HTTP API and scripts.

Each command is synchronous. Whatever goes wrong underneath is re-raised as a
:class:`CommandError` carrying only the rendered message.
"""

from __future__ import annotations

import functools
import logging
from pathlib import Path
from typing import Callable, List, Optional, Sequence, TypeVar, Union

from ortu.database.filters import parse_filter
from ortu.database.history_manager import HistoryManager
from ortu.errors import CommandError
from ortu.models import ClipboardItem

logger = logging.getLogger(__name__)

T = TypeVar("T")
PathLike = Union[str, Path]


def _command(func: Callable[..., T]) -> Callable[..., T]:
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except CommandError:
            raise
        except Exception as exc:
            logger.warning("%s failed: %s", func.__name__, exc)
            raise CommandError(str(exc)) from exc

    return wrapper


class HistoryService:
    def __init__(self, manager: HistoryManager) -> None:
        self.manager = manager

    @_command
    def get_history(self, search: Optional[str] = None) -> List[ClipboardItem]:
        return self.manager.get_history(parse_filter(search))

    @_command
    def delete_entry(self, item_id: int) -> None:
        self.manager.delete_item(item_id)

    @_command
    def toggle_permanent(self, item_id: int) -> None:
        self.manager.toggle_permanent(item_id)

    @_command
    def set_category(self, item_id: int, category: str) -> None:
        self.manager.set_category(item_id, category)

    @_command
    def get_categories(self) -> List[str]:
        return self.manager.get_categories()

    @_command
    def create_group(self, name: str) -> None:
        self.manager.create_group(name)

    @_command
    def delete_group(self, name: str) -> None:
        self.manager.delete_group(name)

    @_command
    def rename_group(self, old_name: str, new_name: str) -> None:
        self.manager.rename_group(old_name, new_name)

    @_command
    def add_to_group(self, item_id: int, group_name: str) -> None:
        self.manager.add_to_group(item_id, group_name)

    @_command
    def remove_from_group(self, item_id: int, group_name: str) -> None:
        self.manager.remove_from_group(item_id, group_name)

    @_command
    def export_group(self, name: str, path: PathLike) -> None:
        self.manager.export_group(name, path)

    @_command
    def import_group(self, name: str, path: PathLike) -> None:
        self.manager.import_group(name, path)

    @_command
    def export_all_txt(self, path: PathLike) -> None:
        self.manager.export_all_txt(path)

    @_command
    def backup_data(self, path: PathLike, groups: Optional[Sequence[str]] = None) -> None:
        document = self.manager.export_all(groups)
        Path(path).write_text(document, encoding="utf-8")
        logger.info("Backup written to %s", path)

    @_command
    def restore_data(self, path: PathLike, mode: str = "merge") -> None:
        document = Path(path).read_text(encoding="utf-8")
        self.manager.restore(document, mode)

    @_command
    def manual_cleanup(self) -> None:
        self.manager.prune_expired()

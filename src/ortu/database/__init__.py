"""
Storage package for Ortu.

Provides the SQLite history manager and the filters it understands.
"""

from ortu.database.filters import (
    BucketFilter,
    GroupFilter,
    HistoryFilter,
    PlainFilter,
    parse_filter,
)
from ortu.database.history_manager import HistoryManager

__all__ = [
    'BucketFilter',
    'GroupFilter',
    'HistoryFilter',
    'HistoryManager',
    'PlainFilter',
    'parse_filter',
]

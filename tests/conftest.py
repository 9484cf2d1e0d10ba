from datetime import datetime, timedelta
from typing import Iterable, List, Union

import pytest

from ortu.clipboard import ClipboardReader
from ortu.database.history_manager import HistoryManager


class FakeClock:
    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeReader(ClipboardReader):
    """Replays a scripted sequence; the last entry repeats forever."""

    def __init__(self, values: Iterable[Union[str, Exception]]):
        self.values: List[Union[str, Exception]] = list(values)
        self.reads = 0

    def ensure_available(self) -> None:
        return None

    def read_text(self) -> str:
        index = min(self.reads, len(self.values) - 1)
        self.reads += 1
        value = self.values[index]
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "ortu.db"


@pytest.fixture
def manager(db_path, clock):
    store = HistoryManager(db_path, clock=clock)
    yield store
    store.close()


def contents(items):
    return [item.raw_content for item in items]

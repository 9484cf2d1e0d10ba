from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from dotenv import load_dotenv

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from ortu.database.history_manager import HistoryManager


MAX_CONTENT_BYTES = 50 * 1024 * 1024


def _default_db_path() -> Path:
    return Path.home() / ".ortu" / "ortu.db"


def _to_float(value: Optional[str], default: float) -> float:
    if value is None or not value.strip():
        return default
    return float(value)


def _to_int(value: Optional[str], default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


@dataclass(frozen=True)
class OrtuConfig:
    db_path: Path = field(default_factory=_default_db_path)
    poll_interval: float = 0.5
    prune_interval: float = 3600.0
    retention_hours: float = 24.0
    max_content_bytes: int = MAX_CONTENT_BYTES
    history_limit: int = 100
    api_host: str = "127.0.0.1"
    api_port: int = 3001

    @classmethod
    def from_env(cls, *, env_path: Optional[Path] = None) -> "OrtuConfig":
        if env_path is not None:
            load_dotenv(env_path, override=False)
        else:
            load_dotenv(override=False)

        db_raw = os.getenv("ORTU_DB_PATH")
        db_path = Path(db_raw).expanduser() if db_raw else _default_db_path()

        return cls(
            db_path=db_path,
            poll_interval=_to_float(
                os.getenv("ORTU_POLL_INTERVAL"), cls.poll_interval),
            prune_interval=_to_float(
                os.getenv("ORTU_PRUNE_INTERVAL"), cls.prune_interval),
            retention_hours=_to_float(
                os.getenv("ORTU_RETENTION_HOURS"), cls.retention_hours),
            max_content_bytes=_to_int(
                os.getenv("ORTU_MAX_CONTENT_BYTES"), cls.max_content_bytes),
            history_limit=_to_int(
                os.getenv("ORTU_HISTORY_LIMIT"), cls.history_limit),
            api_host=os.getenv("ORTU_API_HOST", cls.api_host),
            api_port=_to_int(os.getenv("ORTU_API_PORT"), cls.api_port),
        )

    def create_manager(self) -> "HistoryManager":
        from ortu.database.history_manager import HistoryManager

        return HistoryManager(
            self.db_path,
            retention_hours=self.retention_hours,
            history_limit=self.history_limit,
        )

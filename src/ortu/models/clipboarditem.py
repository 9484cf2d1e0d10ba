from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class ClipboardItem(BaseModel):
    """One captured, imported or restored clipboard snapshot."""
    id: int
    content_type: str = "text"
    raw_content: str
    category: Optional[str] = None  # primary category, mirrors a membership
    groups: List[str] = Field(default_factory=list)
    is_permanent: bool = False
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _as_naive_utc(cls, value: datetime) -> datetime:
        # the database stores naive UTC
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


class Group(BaseModel):
    id: int
    name: str
    is_system: bool = False


class BackupData(BaseModel):
    """Document written by ``backup_data`` and read back by ``restore_data``."""
    history: List[ClipboardItem] = Field(default_factory=list)
    groups: List[Group] = Field(default_factory=list)
    exported_at: str

"""History filters.

The command surface accepts a small string grammar and turns it into one of
the filter types below with :func:`parse_filter`:

* ``category:<name> <text>`` -> :class:`GroupFilter` (group membership)
* ``group:<bucket> <text>`` -> :class:`BucketFilter` (virtual bucket)
* anything else -> :class:`PlainFilter`

A name containing spaces can be double-quoted: ``category:"Shell / OS" ls``.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union


@dataclass(frozen=True)
class PlainFilter:
    text: str


@dataclass(frozen=True)
class GroupFilter:
    name: str
    text: str = ""


@dataclass(frozen=True)
class BucketFilter:
    bucket: str
    text: str = ""


HistoryFilter = Union[PlainFilter, GroupFilter, BucketFilter]


@dataclass(frozen=True)
class BucketSpec:
    column: str
    values: Tuple[str, ...]


# Virtual buckets are query-time aggregates; they are never stored.
VIRTUAL_BUCKETS: Dict[str, BucketSpec] = {
    "Dev": BucketSpec("category", (
        "Docker", "Kubernetes", "IaC", "Cloud CLI", "Shell / OS", "CI / Build",
    )),
    "Code": BucketSpec("category", (
        "Version Control", "Package Management", "Runtime / Build", "Database",
    )),
    "URL": BucketSpec("category", ("URL",)),
    "Images": BucketSpec("content_type", ("image",)),
    "Text": BucketSpec("content_type", ("text",)),
}

BUCKET_COLUMNS = frozenset({"category", "content_type"})

CATEGORY_PREFIX = "category:"
GROUP_PREFIX = "group:"


def _split_name(rest: str) -> Tuple[str, str]:
    if rest.startswith('"'):
        closing = rest.find('"', 1)
        if closing != -1:
            name = rest[1:closing]
            return name, rest[closing + 1:].lstrip(" ")

    parts = rest.split(" ", 1)
    text = parts[1] if len(parts) > 1 else ""
    return parts[0], text


def parse_filter(raw: Optional[str]) -> Optional[HistoryFilter]:
    if raw is None:
        return None

    if raw.startswith(CATEGORY_PREFIX):
        name, text = _split_name(raw[len(CATEGORY_PREFIX):])
        return GroupFilter(name=name, text=text)

    if raw.startswith(GROUP_PREFIX):
        bucket, text = _split_name(raw[len(GROUP_PREFIX):])
        return BucketFilter(bucket=bucket, text=text)

    return PlainFilter(text=raw)


def like_pattern(text: str, *, prefix_only: bool = False) -> str:
    """Build a LIKE pattern (``ESCAPE '\\'``) matching ``text`` literally."""
    escaped = (
        text.replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )
    if prefix_only:
        return f"{escaped}%"
    return f"%{escaped}%"

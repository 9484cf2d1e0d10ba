import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Union

from ortu.database.filters import (
    BUCKET_COLUMNS,
    VIRTUAL_BUCKETS,
    BucketFilter,
    GroupFilter,
    HistoryFilter,
    PlainFilter,
    like_pattern,
)
from ortu.errors import NotFoundError, StoreError
from ortu.models import BackupData, ClipboardItem, Group

logger = logging.getLogger(__name__)

EXPORT_SEPARATOR = "\n---\n"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
RESTORE_MODES = ("replace", "merge")
SIMILARITY_MIN_LENGTH = 5
_ID_CHUNK = 500

_ITEM_COLUMNS = (
    "h.id, h.content_type, h.raw_content, h.category, h.is_permanent, h.created_at"
)
_ORDER_BY = "ORDER BY h.is_permanent DESC, h.created_at DESC, h.id DESC"
_IN_GROUP = (
    "EXISTS (SELECT 1 FROM item_groups ig JOIN groups g ON g.id = ig.group_id "
    "WHERE ig.item_id = h.id AND g.name {op})"
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime(TIMESTAMP_FORMAT)


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


class HistoryManager:
    """SQLite-backed clipboard history.

    Every public method takes the connection lock for its whole duration, so
    the capture loop, the retention sweeper and command callers are strictly
    serialized. Multi-statement operations run inside one transaction.
    """

    def __init__(
        self,
        db_path: Union[str, Path],
        *,
        retention_hours: float = 24.0,
        history_limit: int = 100,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.db_path = str(db_path)
        self.retention_hours = retention_hours
        self.history_limit = history_limit
        self._clock = clock or _utcnow
        self._lock = threading.RLock()

        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(
                self.db_path, check_same_thread=False, isolation_level=None
            )
        except (OSError, sqlite3.Error) as exc:
            raise StoreError(
                f"cannot open database {self.db_path}: {exc}") from exc

        self.conn.row_factory = sqlite3.Row
        self._init_db()

    # ------------------------------------------------------------------
    # Connection helpers
    # ------------------------------------------------------------------
    @contextmanager
    def _locked(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self.conn
            except sqlite3.Error as exc:
                raise StoreError(str(exc)) from exc

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._locked() as conn:
            conn.execute("BEGIN")
            try:
                yield conn
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise

    def _timestamp(self) -> str:
        return format_timestamp(self._clock())

    def _init_db(self) -> None:
        with self._locked() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute("PRAGMA foreign_keys = ON")

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS groups (
                    id INTEGER PRIMARY KEY,
                    name TEXT UNIQUE NOT NULL,
                    is_system BOOLEAN DEFAULT 0
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    content_type TEXT NOT NULL,
                    raw_content TEXT NOT NULL,
                    category TEXT,
                    is_permanent BOOLEAN DEFAULT 0,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
                """
            )

            # Early databases pointed item_groups at a clipboard_items table.
            fk_targets = {
                row["table"]
                for row in conn.execute("PRAGMA foreign_key_list('item_groups')")
            }
            if "clipboard_items" in fk_targets:
                logger.warning("Dropping item_groups with a stale foreign key")
                conn.execute("DROP TABLE item_groups")

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS item_groups (
                    item_id INTEGER NOT NULL,
                    group_id INTEGER NOT NULL,
                    PRIMARY KEY (item_id, group_id),
                    FOREIGN KEY(item_id) REFERENCES history(id) ON DELETE CASCADE,
                    FOREIGN KEY(group_id) REFERENCES groups(id) ON DELETE CASCADE
                )
                """
            )

            # Backfill memberships from the legacy category column.
            conn.execute(
                "INSERT OR IGNORE INTO groups (name) "
                "SELECT DISTINCT category FROM history WHERE category IS NOT NULL"
            )
            conn.execute(
                """
                INSERT OR IGNORE INTO item_groups (item_id, group_id)
                SELECT h.id, g.id FROM history h
                JOIN groups g ON h.category = g.name
                WHERE h.category IS NOT NULL
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_created_at ON history(created_at DESC)"
            )
        logger.info("History database ready at %s", self.db_path)

    # ------------------------------------------------------------------
    # Row helpers (caller holds the lock)
    # ------------------------------------------------------------------
    def _insert_row(
        self,
        conn: sqlite3.Connection,
        content: str,
        category: Optional[str],
        is_permanent: bool,
        created_at: str,
        content_type: str = "text",
    ) -> int:
        cursor = conn.execute(
            "INSERT INTO history (content_type, raw_content, category, is_permanent, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (content_type, content, category, int(is_permanent), created_at),
        )
        return cursor.lastrowid

    def _ensure_group(self, conn: sqlite3.Connection, name: str) -> int:
        conn.execute("INSERT OR IGNORE INTO groups (name) VALUES (?)", (name,))
        row = conn.execute(
            "SELECT id FROM groups WHERE name = ?", (name,)).fetchone()
        return row["id"]

    def _require_item(self, conn: sqlite3.Connection, item_id: int) -> None:
        row = conn.execute(
            "SELECT 1 FROM history WHERE id = ?", (item_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"clipboard item {item_id} not found")

    def _link(self, conn: sqlite3.Connection, item_id: int, group_id: int) -> None:
        conn.execute(
            "INSERT OR IGNORE INTO item_groups (item_id, group_id) VALUES (?, ?)",
            (item_id, group_id),
        )

    def _attach_groups(
        self, conn: sqlite3.Connection, rows: Sequence[sqlite3.Row]
    ) -> List[ClipboardItem]:
        ids = [row["id"] for row in rows]
        groups_map: Dict[int, List[str]] = {}

        for start in range(0, len(ids), _ID_CHUNK):
            chunk = ids[start:start + _ID_CHUNK]
            group_rows = conn.execute(
                f"""
                SELECT ig.item_id, g.name FROM item_groups ig
                JOIN groups g ON ig.group_id = g.id
                WHERE ig.item_id IN ({_placeholders(len(chunk))})
                ORDER BY g.name
                """,
                chunk,
            )
            for group_row in group_rows:
                groups_map.setdefault(group_row["item_id"], []).append(
                    group_row["name"])

        return [
            ClipboardItem(
                id=row["id"],
                content_type=row["content_type"],
                raw_content=row["raw_content"],
                category=row["category"],
                groups=groups_map.get(row["id"], []),
                is_permanent=bool(row["is_permanent"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------
    def insert_item(self, content: str, category: Optional[str] = None) -> int:
        with self._transaction() as conn:
            item_id = self._insert_row(
                conn, content, category, False, self._timestamp())
            if category:
                self._link(conn, item_id, self._ensure_group(conn, category))
        return item_id

    def get_item(self, item_id: int) -> Optional[ClipboardItem]:
        with self._locked() as conn:
            rows = conn.execute(
                f"SELECT {_ITEM_COLUMNS} FROM history h WHERE h.id = ?", (item_id,)
            ).fetchall()
            items = self._attach_groups(conn, rows)
        return items[0] if items else None

    def get_history(
        self,
        history_filter: Optional[HistoryFilter] = None,
        limit: Optional[int] = None,
    ) -> List[ClipboardItem]:
        limit = self.history_limit if limit is None else limit
        where = ""
        params: List[object] = []

        if isinstance(history_filter, PlainFilter):
            pattern = like_pattern(history_filter.text)
            where = (
                "WHERE h.raw_content LIKE ? ESCAPE '\\' "
                "OR h.category LIKE ? ESCAPE '\\'"
            )
            params = [pattern, pattern]
        elif isinstance(history_filter, GroupFilter):
            where = (
                f"WHERE {_IN_GROUP.format(op='= ?')} "
                "AND h.raw_content LIKE ? ESCAPE '\\'"
            )
            params = [history_filter.name, like_pattern(history_filter.text)]
        elif isinstance(history_filter, BucketFilter):
            spec = VIRTUAL_BUCKETS.get(history_filter.bucket)
            if spec is None or spec.column not in BUCKET_COLUMNS:
                return []
            where = (
                f"WHERE h.{spec.column} IN ({_placeholders(len(spec.values))}) "
                "AND h.raw_content LIKE ? ESCAPE '\\'"
            )
            params = [*spec.values, like_pattern(history_filter.text)]

        sql = f"SELECT {_ITEM_COLUMNS} FROM history h {where} {_ORDER_BY} LIMIT ?"
        with self._locked() as conn:
            rows = conn.execute(sql, [*params, limit]).fetchall()
            return self._attach_groups(conn, rows)

    def delete_item(self, item_id: int) -> None:
        with self._locked() as conn:
            conn.execute("DELETE FROM history WHERE id = ?", (item_id,))

    def toggle_permanent(self, item_id: int) -> None:
        with self._locked() as conn:
            conn.execute(
                "UPDATE history SET is_permanent = NOT is_permanent WHERE id = ?",
                (item_id,),
            )

    def set_category(self, item_id: int, category: str) -> None:
        """Set the primary category and add the matching membership."""
        with self._transaction() as conn:
            self._require_item(conn, item_id)
            conn.execute(
                "UPDATE history SET category = ? WHERE id = ?", (category, item_id)
            )
            self._link(conn, item_id, self._ensure_group(conn, category))

    def find_similar_category(self, content: str) -> Optional[str]:
        if len(content) < SIMILARITY_MIN_LENGTH:
            return None
        tokens = content.split()
        if not tokens:
            return None

        with self._locked() as conn:
            row = conn.execute(
                "SELECT category FROM history "
                "WHERE category IS NOT NULL AND raw_content LIKE ? ESCAPE '\\' "
                "ORDER BY id LIMIT 1",
                (like_pattern(tokens[0], prefix_only=True),),
            ).fetchone()
        return row["category"] if row else None

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------
    def get_categories(self) -> List[str]:
        with self._locked() as conn:
            rows = conn.execute("SELECT name FROM groups ORDER BY name ASC")
            return [row["name"] for row in rows]

    def create_group(self, name: str, is_system: bool = False) -> int:
        with self._locked() as conn:
            cursor = conn.execute(
                "INSERT INTO groups (name, is_system) VALUES (?, ?)",
                (name, int(is_system)),
            )
        logger.info("Created group %r", name)
        return cursor.lastrowid

    def delete_group(self, name: str) -> None:
        # Memberships go with the group row through ON DELETE CASCADE.
        with self._transaction() as conn:
            conn.execute(
                "UPDATE history SET category = NULL WHERE category = ?", (name,))
            conn.execute("DELETE FROM groups WHERE name = ?", (name,))
        logger.info("Deleted group %r", name)

    def rename_group(self, old_name: str, new_name: str) -> None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT id FROM groups WHERE name = ?", (old_name,)).fetchone()
            if row is None:
                raise NotFoundError(f"group {old_name!r} not found")
            if old_name == new_name:
                return
            conn.execute(
                "UPDATE history SET category = ? WHERE category = ?",
                (new_name, old_name),
            )
            conn.execute(
                "UPDATE groups SET name = ? WHERE id = ?", (new_name, row["id"]))
        logger.info("Renamed group %r to %r", old_name, new_name)

    def add_to_group(self, item_id: int, group_name: str) -> None:
        with self._transaction() as conn:
            self._require_item(conn, item_id)
            self._link(conn, item_id, self._ensure_group(conn, group_name))

    def remove_from_group(self, item_id: int, group_name: str) -> None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT id FROM groups WHERE name = ?", (group_name,)).fetchone()
            if row is None:
                return
            conn.execute(
                "DELETE FROM item_groups WHERE item_id = ? AND group_id = ?",
                (item_id, row["id"]),
            )

    # ------------------------------------------------------------------
    # Text import / export
    # ------------------------------------------------------------------
    def _write_segments(self, path: Union[str, Path], contents: List[str]) -> None:
        try:
            with open(path, "w", encoding="utf-8", newline="") as handle:
                handle.write(EXPORT_SEPARATOR.join(contents))
        except OSError as exc:
            logger.error("Failed to write export %s: %s", path, exc)
            raise StoreError(f"cannot write {path}: {exc}") from exc

    def export_group(self, name: str, path: Union[str, Path]) -> int:
        with self._locked() as conn:
            rows = conn.execute(
                f"""
                SELECT h.raw_content FROM history h
                WHERE {_IN_GROUP.format(op='= ?')}
                ORDER BY h.created_at DESC, h.id DESC
                """,
                (name,),
            ).fetchall()
        contents = [row["raw_content"] for row in rows]
        self._write_segments(path, contents)
        logger.info("Exported %d items of group %r to %s",
                    len(contents), name, path)
        return len(contents)

    def export_all_txt(self, path: Union[str, Path]) -> int:
        with self._locked() as conn:
            rows = conn.execute(
                "SELECT raw_content FROM history ORDER BY created_at DESC, id DESC"
            ).fetchall()
        contents = [row["raw_content"] for row in rows]
        self._write_segments(path, contents)
        logger.info("Exported %d items to %s", len(contents), path)
        return len(contents)

    def import_group(self, name: str, path: Union[str, Path]) -> int:
        """Insert every segment of ``path`` as a new item of group ``name``.

        Importing the same file twice duplicates its items.
        """
        try:
            text = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Failed to read import %s: %s", path, exc)
            raise StoreError(f"cannot read {path}: {exc}") from exc

        segments = [s for s in text.split(EXPORT_SEPARATOR) if s.strip()]
        with self._transaction() as conn:
            group_id = self._ensure_group(conn, name)
            created_at = self._timestamp()
            for segment in segments:
                item_id = self._insert_row(
                    conn, segment, name, False, created_at)
                self._link(conn, item_id, group_id)
        logger.info("Imported %d items into group %r", len(segments), name)
        return len(segments)

    # ------------------------------------------------------------------
    # Backup / restore
    # ------------------------------------------------------------------
    def export_all(self, selected_groups: Optional[Sequence[str]] = None) -> str:
        """Serialize history and groups as a pretty-printed JSON document.

        With ``selected_groups`` only the members of those groups and the
        groups themselves are included; ``None`` or an empty list means all.
        """
        selected = list(selected_groups or [])
        with self._locked() as conn:
            if selected:
                marks = _placeholders(len(selected))
                rows = conn.execute(
                    f"SELECT {_ITEM_COLUMNS} FROM history h "
                    f"WHERE {_IN_GROUP.format(op=f'IN ({marks})')} ORDER BY h.id",
                    selected,
                ).fetchall()
                group_rows = conn.execute(
                    f"SELECT id, name, is_system FROM groups WHERE name IN ({marks}) "
                    "ORDER BY name",
                    selected,
                ).fetchall()
            else:
                rows = conn.execute(
                    f"SELECT {_ITEM_COLUMNS} FROM history h ORDER BY h.id"
                ).fetchall()
                group_rows = conn.execute(
                    "SELECT id, name, is_system FROM groups ORDER BY name"
                ).fetchall()
            history = self._attach_groups(conn, rows)

        backup = BackupData(
            history=history,
            groups=[
                Group(id=row["id"], name=row["name"],
                      is_system=bool(row["is_system"]))
                for row in group_rows
            ],
            exported_at=datetime.now().astimezone().isoformat(),
        )
        return backup.model_dump_json(indent=2)

    def restore(self, json_text: str, mode: str = "merge") -> int:
        """Load a backup document; returns the number of items inserted.

        ``replace`` wipes history and groups first. ``merge`` keeps existing
        rows and reuses an item whose raw content matches exactly, only adding
        its missing memberships. Backup ids are never reused.
        """
        if mode not in RESTORE_MODES:
            raise ValueError(f"unknown restore mode {mode!r}")
        backup = BackupData.model_validate_json(json_text)

        inserted = 0
        with self._transaction() as conn:
            if mode == "replace":
                conn.execute("DELETE FROM history")
                conn.execute("DELETE FROM groups")

            conn.executemany(
                "INSERT OR IGNORE INTO groups (name, is_system) VALUES (?, ?)",
                [(group.name, int(group.is_system)) for group in backup.groups],
            )

            for item in backup.history:
                item_id = None
                if mode == "merge":
                    row = conn.execute(
                        "SELECT id FROM history WHERE raw_content = ? ORDER BY id LIMIT 1",
                        (item.raw_content,),
                    ).fetchone()
                    if row is not None:
                        item_id = row["id"]

                if item_id is None:
                    item_id = self._insert_row(
                        conn,
                        item.raw_content,
                        item.category,
                        item.is_permanent,
                        format_timestamp(item.created_at),
                        content_type=item.content_type,
                    )
                    inserted += 1

                # memberships may name groups missing from a hand-edited backup
                for group_name in item.groups:
                    self._link(conn, item_id, self._ensure_group(conn, group_name))

        logger.info("Restored backup (%s): %d new items of %d",
                    mode, inserted, len(backup.history))
        return inserted

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------
    def prune_expired(self, now: Optional[datetime] = None) -> int:
        cutoff = (now or self._clock()) - timedelta(hours=self.retention_hours)
        with self._locked() as conn:
            cursor = conn.execute(
                "DELETE FROM history WHERE is_permanent = 0 AND created_at < ?",
                (format_timestamp(cutoff),),
            )
        if cursor.rowcount:
            logger.info("Pruned %d expired clipboard items", cursor.rowcount)
        return cursor.rowcount

    def clear_ephemeral_on_start(self) -> int:
        """Drop every unpinned item left over from a previous run."""
        with self._locked() as conn:
            cursor = conn.execute("DELETE FROM history WHERE is_permanent = 0")
        logger.info("Cleared %d ephemeral items from the last session",
                    cursor.rowcount)
        return cursor.rowcount

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def __enter__(self) -> "HistoryManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

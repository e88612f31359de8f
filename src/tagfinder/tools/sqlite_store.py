"""
SQLite-backed item store.

Holds the item library (tag groups, tags, items and their attachments) and
runs compiled filters against it. Each call opens its own connection, so
a store can be shared between threads without locking.
"""

import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Union

from ..models.catalog import Item, Tag, TagGroup
from ..query.errors import ErrorKind, ExecutionError
from ..query.sql_compiler import CompiledFilter
from .base import ItemStore
from .snapshot import InMemoryCatalog


logger = logging.getLogger(__name__)


ORIGIN = 'sqlite'

_NOW = "(CAST(strftime('%s', 'now') AS INTEGER))"

SCHEMA_STATEMENTS = (
    f"""CREATE TABLE IF NOT EXISTS tag_groups (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        created_at INTEGER NOT NULL DEFAULT {_NOW},
        updated_at INTEGER NOT NULL DEFAULT {_NOW}
    )""",
    f"""CREATE TABLE IF NOT EXISTS tags (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        group_id INTEGER NOT NULL,
        value TEXT NOT NULL,
        created_at INTEGER NOT NULL DEFAULT {_NOW},
        updated_at INTEGER NOT NULL DEFAULT {_NOW},
        FOREIGN KEY (group_id) REFERENCES tag_groups(id) ON DELETE CASCADE,
        UNIQUE(group_id, value)
    )""",
    f"""CREATE TABLE IF NOT EXISTS items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        path TEXT NOT NULL UNIQUE,
        is_directory BOOLEAN NOT NULL,
        size INTEGER,
        modified_time INTEGER,
        created_at INTEGER NOT NULL DEFAULT {_NOW},
        updated_at INTEGER NOT NULL DEFAULT {_NOW}
    )""",
    f"""CREATE TABLE IF NOT EXISTS item_tags (
        item_id INTEGER NOT NULL,
        tag_id INTEGER NOT NULL,
        created_at INTEGER NOT NULL DEFAULT {_NOW},
        PRIMARY KEY (item_id, tag_id),
        FOREIGN KEY (item_id) REFERENCES items(id) ON DELETE CASCADE,
        FOREIGN KEY (tag_id) REFERENCES tags(id) ON DELETE CASCADE
    )""",
    "CREATE INDEX IF NOT EXISTS idx_items_path ON items(path)",
    "CREATE INDEX IF NOT EXISTS idx_tags_group_id ON tags(group_id)",
    "CREATE INDEX IF NOT EXISTS idx_tags_value ON tags(value)",
    "CREATE INDEX IF NOT EXISTS idx_item_tags_item_id ON item_tags(item_id)",
    "CREATE INDEX IF NOT EXISTS idx_item_tags_tag_id ON item_tags(tag_id)",
)


def _row_to_item(row: sqlite3.Row) -> Item:
    return Item(
        id=row['id'],
        path=row['path'],
        is_directory=bool(row['is_directory']),
        size=row['size'],
        modified_time=row['modified_time'],
        created_at=row['created_at'],
    )


class SQLiteStore(ItemStore):
    """
    Item library stored in a SQLite database file.

    Args:
        db_path: Path to the database file; parent directories are created
        progress_interval: SQLite VM steps between timeout checks
    """

    def __init__(self, db_path: Union[str, Path], progress_interval: int = 1000):
        self.db_path = Path(db_path)
        self.progress_interval = progress_interval
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.initialize_schema()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """
        Open a connection with foreign keys on and dict-like rows.

        Yields:
            An sqlite3 Connection, closed on exit
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def reading(self, action: str) -> Iterator[sqlite3.Connection]:
        """
        Open a connection for a catalog read, tagging SQLite failures.

        Args:
            action: What is being read, used in the error message

        Raises:
            ExecutionError: STORAGE_FAILURE for any SQLite error
        """
        try:
            with self.connect() as conn:
                yield conn
        except sqlite3.Error as e:
            self.logger.error(f"SQLite error while reading {action}: {e}")
            raise ExecutionError(
                ErrorKind.STORAGE_FAILURE,
                f"Failed to read {action}: {e}",
                ORIGIN,
            ) from e

    def initialize_schema(self) -> None:
        with self.connect() as conn:
            for statement in SCHEMA_STATEMENTS:
                conn.execute(statement)
            conn.commit()
        self.logger.debug(f"Schema ready in {self.db_path}")

    # Library writes used to build fixtures and imports

    def add_group(self, name: str) -> TagGroup:
        with self.connect() as conn:
            cursor = conn.execute("INSERT INTO tag_groups (name) VALUES (?)", (name,))
            conn.commit()
            return TagGroup(id=cursor.lastrowid, name=name)

    def add_tag(self, group_id: int, value: str) -> Tag:
        with self.connect() as conn:
            cursor = conn.execute(
                "INSERT INTO tags (group_id, value) VALUES (?, ?)",
                (group_id, value),
            )
            conn.commit()
            return Tag(id=cursor.lastrowid, group_id=group_id, value=value)

    def add_item(
        self,
        path: str,
        is_directory: bool = False,
        size: Optional[int] = None,
        modified_time: Optional[int] = None,
        created_at: Optional[int] = None,
    ) -> Item:
        """
        Insert an item.

        Args:
            path: Absolute path, unique across items
            is_directory: Whether the item is a directory
            size: Size in bytes
            modified_time: Modification time, epoch seconds
            created_at: Tracking time, epoch seconds (defaults to now)

        Returns:
            The stored item
        """
        if created_at is None:
            created_at = int(time.time())
        with self.connect() as conn:
            cursor = conn.execute(
                "INSERT INTO items (path, is_directory, size, modified_time, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (path, int(is_directory), size, modified_time, created_at),
            )
            conn.commit()
            return Item(
                id=cursor.lastrowid,
                path=path,
                is_directory=is_directory,
                size=size,
                modified_time=modified_time,
                created_at=created_at,
            )

    def attach_tag(self, item_id: int, tag_id: int) -> None:
        with self.connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO item_tags (item_id, tag_id) VALUES (?, ?)",
                (item_id, tag_id),
            )
            conn.commit()

    # Catalog reads

    def get_tags(self) -> List[Tag]:
        with self.reading('tags') as conn:
            rows = conn.execute("SELECT id, group_id, value FROM tags ORDER BY id").fetchall()
        return [Tag(id=r['id'], group_id=r['group_id'], value=r['value']) for r in rows]

    def get_tag_groups(self) -> List[TagGroup]:
        with self.reading('tag groups') as conn:
            rows = conn.execute("SELECT id, name FROM tag_groups ORDER BY id").fetchall()
        return [TagGroup(id=r['id'], name=r['name']) for r in rows]

    def get_items(self) -> List[Item]:
        with self.reading('items') as conn:
            rows = conn.execute(
                "SELECT id, path, is_directory, size, modified_time, created_at FROM items ORDER BY id"
            ).fetchall()
        return [_row_to_item(row) for row in rows]

    def get_item_tag_ids(self) -> Dict[int, Set[int]]:
        with self.reading('item tags') as conn:
            rows = conn.execute("SELECT item_id, tag_id FROM item_tags").fetchall()
        tag_ids: Dict[int, Set[int]] = {}
        for row in rows:
            tag_ids.setdefault(row['item_id'], set()).add(row['tag_id'])
        return tag_ids

    def snapshot(self) -> InMemoryCatalog:
        """Copy the whole library into an InMemoryCatalog."""
        with self.reading('item tags') as conn:
            attachments = [
                (row['item_id'], row['tag_id'])
                for row in conn.execute("SELECT item_id, tag_id FROM item_tags").fetchall()
            ]
        return InMemoryCatalog(
            items=self.get_items(),
            tags=self.get_tags(),
            groups=self.get_tag_groups(),
            item_tags=attachments,
        )

    # Query execution

    def list_items_matching(
        self,
        compiled_filter: CompiledFilter,
        timeout: Optional[float] = None,
    ) -> List[Item]:
        """
        Run a compiled filter and return the matching items ordered by path.

        Args:
            compiled_filter: Filter produced by the SQL compiler
            timeout: Abort after this many seconds

        Returns:
            Matching items

        Raises:
            ExecutionError: TIMEOUT when the deadline passes, STORAGE_FAILURE
                for any other SQLite error
        """
        sql = compiled_filter.to_select()
        deadline = time.monotonic() + timeout if timeout is not None else None
        timed_out = False

        def check_deadline() -> int:
            nonlocal timed_out
            if time.monotonic() > deadline:
                timed_out = True
                return 1
            return 0

        try:
            with self.connect() as conn:
                if deadline is not None:
                    conn.set_progress_handler(check_deadline, self.progress_interval)
                rows = conn.execute(sql, compiled_filter.params).fetchall()
        except sqlite3.Error as e:
            if timed_out:
                self.logger.error(f"Query exceeded {timeout}s and was interrupted")
                raise ExecutionError(
                    ErrorKind.TIMEOUT,
                    f"Query exceeded the {timeout}s timeout",
                    ORIGIN,
                ) from e
            self.logger.error(f"SQLite error while running filter: {e}")
            raise ExecutionError(ErrorKind.STORAGE_FAILURE, f"Storage query failed: {e}", ORIGIN) from e

        return [_row_to_item(row) for row in rows]

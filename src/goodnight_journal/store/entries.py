"""SQLite-backed local entry store.

The store is the device-resident source of truth for journal entries.
Every write commits before the call returns (WAL journal,
``synchronous=FULL``), so a successful ``insert``/``update``/``delete``
is durable and there is no write-behind.

The natural key (``user_id``, ``date``) carries a UNIQUE constraint, so
a second entry for the same day fails with ``ConflictError`` instead of
silently duplicating.

All ``sqlite3`` failures are re-raised as ``StorageError``.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
import sqlite3
from collections.abc import Callable
from pathlib import Path

from goodnight_journal.errors import (
    ConflictError,
    EntryNotFoundError,
    StorageError,
)
from goodnight_journal.models import JournalEntry

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS entries (
    id              TEXT PRIMARY KEY,
    user_id         TEXT NOT NULL,
    day             TEXT NOT NULL,
    poem_content    TEXT NOT NULL DEFAULT '',
    letters         TEXT NOT NULL DEFAULT '[]',
    journal_content TEXT NOT NULL DEFAULT '',
    last_modified   TEXT NOT NULL,
    is_completed    INTEGER NOT NULL DEFAULT 0,
    needs_sync      INTEGER NOT NULL DEFAULT 0,
    UNIQUE (user_id, day)
);
CREATE INDEX IF NOT EXISTS idx_entries_needs_sync
    ON entries (needs_sync, day);
"""

_COLUMNS = (
    "id, user_id, day, poem_content, letters, journal_content, "
    "last_modified, is_completed, needs_sync"
)


class EntryStore:
    """Durable local store of ``JournalEntry`` rows.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.
            Parent directories are created on demand.
    """

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(self._db_path)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=FULL")
            self._conn.executescript(_SCHEMA)
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(
                f"Cannot open entry store at {self._db_path}: {exc}"
            ) from exc

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, entry: JournalEntry) -> None:
        """Insert a new entry.

        Raises:
            ConflictError: An entry already exists for
                (``user_id``, ``date``) or with the same ``id``.
            StorageError: The write did not commit.
        """
        try:
            with self._conn:
                self._conn.execute(
                    f"INSERT INTO entries ({_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    _to_row(entry),
                )
        except sqlite3.IntegrityError as exc:
            raise ConflictError(
                f"Entry for user {entry.user_id!r} on {entry.date_key} "
                f"already exists"
            ) from exc
        except sqlite3.Error as exc:
            raise StorageError(f"Insert failed: {exc}") from exc
        logger.debug("Inserted entry %s (%s)", entry.id, entry.date_key)

    def update(self, entry: JournalEntry) -> None:
        """Persist *entry* over the stored row with the same ``id``.

        Raises:
            EntryNotFoundError: No row with ``entry.id`` exists.
            ConflictError: The new date collides with another entry.
            StorageError: The write did not commit.
        """
        row = _to_row(entry)
        try:
            with self._conn:
                cursor = self._conn.execute(
                    "UPDATE entries SET user_id = ?, day = ?, "
                    "poem_content = ?, letters = ?, journal_content = ?, "
                    "last_modified = ?, is_completed = ?, needs_sync = ? "
                    "WHERE id = ?",
                    (*row[1:], row[0]),
                )
        except sqlite3.IntegrityError as exc:
            raise ConflictError(
                f"Entry for user {entry.user_id!r} on {entry.date_key} "
                f"already exists"
            ) from exc
        except sqlite3.Error as exc:
            raise StorageError(f"Update failed: {exc}") from exc
        if cursor.rowcount == 0:
            raise EntryNotFoundError(f"No entry with id {entry.id}")
        logger.debug("Updated entry %s (%s)", entry.id, entry.date_key)

    def delete(self, entry: JournalEntry) -> None:
        """Remove *entry*.  Deleting an absent entry is a no-op."""
        try:
            with self._conn:
                self._conn.execute(
                    "DELETE FROM entries WHERE id = ?", (entry.id,)
                )
        except sqlite3.Error as exc:
            raise StorageError(f"Delete failed: {exc}") from exc
        logger.debug("Deleted entry %s (%s)", entry.id, entry.date_key)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, entry_id: str) -> JournalEntry | None:
        """Return the entry with *entry_id*, or ``None``."""
        rows = self._select("WHERE id = ?", (entry_id,))
        return rows[0] if rows else None

    def get_by_date(
        self, user_id: str, day: dt.date
    ) -> JournalEntry | None:
        """Return the entry for the natural key, or ``None``."""
        rows = self._select(
            "WHERE user_id = ? AND day = ?", (user_id, day.isoformat())
        )
        return rows[0] if rows else None

    def query(
        self,
        start: dt.date | None = None,
        end: dt.date | None = None,
        *,
        user_id: str | None = None,
        needs_sync: bool | None = None,
        is_completed: bool | None = None,
        predicate: Callable[[JournalEntry], bool] | None = None,
        descending: bool = False,
    ) -> list[JournalEntry]:
        """Return entries with ``start <= date < end``, ordered by date.

        Either bound may be omitted.  Field filters are applied in SQL;
        *predicate* is applied afterwards for anything else.
        """
        clauses: list[str] = []
        params: list = []
        if start is not None:
            clauses.append("day >= ?")
            params.append(start.isoformat())
        if end is not None:
            clauses.append("day < ?")
            params.append(end.isoformat())
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        if needs_sync is not None:
            clauses.append("needs_sync = ?")
            params.append(int(needs_sync))
        if is_completed is not None:
            clauses.append("is_completed = ?")
            params.append(int(is_completed))

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        order = "DESC" if descending else "ASC"
        entries = self._select(f"{where} ORDER BY day {order}", params)
        if predicate is not None:
            entries = [e for e in entries if predicate(e)]
        return entries

    def count(self, **filters) -> int:
        """Number of entries matching the ``query`` field filters."""
        return len(self.query(**filters))

    def _select(self, tail: str, params) -> list[JournalEntry]:
        try:
            cursor = self._conn.execute(
                f"SELECT {_COLUMNS} FROM entries {tail}", tuple(params)
            )
            return [_from_row(row) for row in cursor.fetchall()]
        except sqlite3.Error as exc:
            raise StorageError(f"Query failed: {exc}") from exc


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------


def _to_row(entry: JournalEntry) -> tuple:
    return (
        entry.id,
        entry.user_id,
        entry.date.isoformat(),
        entry.poem_content,
        json.dumps(entry.letters),
        entry.journal_content,
        entry.last_modified.isoformat(),
        int(entry.is_completed),
        int(entry.needs_sync),
    )


def _from_row(row: sqlite3.Row) -> JournalEntry:
    return JournalEntry(
        id=row["id"],
        user_id=row["user_id"],
        date=dt.date.fromisoformat(row["day"]),
        poem_content=row["poem_content"],
        letters=json.loads(row["letters"]),
        journal_content=row["journal_content"],
        last_modified=dt.datetime.fromisoformat(row["last_modified"]),
        is_completed=bool(row["is_completed"]),
        needs_sync=bool(row["needs_sync"]),
    )

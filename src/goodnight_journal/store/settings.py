"""Key-value settings persisted as a single JSON file.

Holds the small amount of engine state that lives outside the entry
store: the pull cursor (``last_pull_at``), the last sync outcome, and
pending remote deletes (tombstones).

Writes are atomic: ``_flush()`` writes a temp file in the same directory
and ``os.replace()``s it over the target, so a reader (or a crash) never
sees a half-written file.  Every setter flushes before returning.
"""

from __future__ import annotations

import datetime as dt
import json
import os
import tempfile
from pathlib import Path
from typing import Any

from goodnight_journal.errors import StorageError

LAST_PULL_AT = "last_pull_at"
LAST_SYNC_AT = "last_sync_at"
LAST_SYNC_ERROR = "last_sync_error"
PENDING_DELETES = "pending_deletes"


class SettingsStore:
    """Load, query and atomically save the settings file.

    Args:
        path: Location of the JSON settings file.  Created on first write.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._data: dict[str, Any] = self._load()

    # ------------------------------------------------------------------
    # Generic access
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set *key* and persist immediately."""
        self._data[key] = value
        self._flush()

    def update(self, values: dict[str, Any]) -> None:
        """Set several keys with a single write."""
        self._data.update(values)
        self._flush()

    # ------------------------------------------------------------------
    # Timestamps
    # ------------------------------------------------------------------

    def get_timestamp(self, key: str) -> dt.datetime | None:
        raw = self._data.get(key)
        if raw is None:
            return None
        return dt.datetime.fromisoformat(raw)

    def set_timestamp(self, key: str, value: dt.datetime) -> None:
        self.set(key, value.isoformat())

    # ------------------------------------------------------------------
    # Tombstones
    # ------------------------------------------------------------------

    def pending_deletes(self) -> list[tuple[str, str]]:
        """Return pending remote deletes as ``(user_id, date_key)`` pairs."""
        return [
            (item["user_id"], item["date"])
            for item in self._data.get(PENDING_DELETES, [])
        ]

    def add_pending_delete(self, user_id: str, date_key: str) -> None:
        if (user_id, date_key) in self.pending_deletes():
            return
        items = list(self._data.get(PENDING_DELETES, []))
        items.append({"user_id": user_id, "date": date_key})
        self.set(PENDING_DELETES, items)

    def remove_pending_delete(self, user_id: str, date_key: str) -> None:
        """Drop a tombstone.  No-op if it is not present."""
        current = self._data.get(PENDING_DELETES, [])
        items = [
            item
            for item in current
            if (item["user_id"], item["date"]) != (user_id, date_key)
        ]
        if len(items) != len(current):
            self.set(PENDING_DELETES, items)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {"version": 1}
        try:
            with open(self._path, encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, ValueError) as exc:
            raise StorageError(
                f"Cannot read settings file {self._path}: {exc}"
            ) from exc

    def _flush(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self._path.parent), suffix=".tmp"
            )
        except OSError as exc:
            raise StorageError(
                f"Cannot write settings file {self._path}: {exc}"
            ) from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self._path)
        except BaseException as exc:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            if isinstance(exc, OSError):
                raise StorageError(
                    f"Cannot write settings file {self._path}: {exc}"
                ) from exc
            raise

"""Tests for the SQLite entry store."""

import datetime as dt
import sqlite3
from unittest.mock import MagicMock

import pytest

from goodnight_journal.errors import (
    ConflictError,
    EntryNotFoundError,
    StorageError,
)
from goodnight_journal.store.entries import EntryStore


class TestWrites:
    def test_insert_then_get(self, store, make_entry):
        entry = make_entry(journal="hi", letters=["A", "B"])
        store.insert(entry)
        loaded = store.get(entry.id)
        assert loaded == entry

    def test_round_trip_preserves_aware_timestamp(self, store, make_entry):
        modified = dt.datetime(2024, 3, 1, 22, 15, 30, 123456, tzinfo=dt.timezone.utc)
        entry = make_entry(modified=modified)
        store.insert(entry)
        assert store.get(entry.id).last_modified == modified

    def test_second_entry_same_day_conflicts(self, store, make_entry):
        store.insert(make_entry("2024-03-01"))
        with pytest.raises(ConflictError):
            store.insert(make_entry("2024-03-01"))

    def test_same_day_different_users_allowed(self, store, make_entry):
        store.insert(make_entry("2024-03-01"))
        store.insert(make_entry("2024-03-01", user_id="someone-else"))
        assert store.count() == 2

    def test_update_replaces_fields(self, store, make_entry):
        entry = make_entry()
        store.insert(entry)
        store.update(entry.with_content(journal_content="edited"))
        assert store.get(entry.id).journal_content == "edited"

    def test_update_missing_entry_raises(self, store, make_entry):
        with pytest.raises(EntryNotFoundError):
            store.update(make_entry())

    def test_delete_is_idempotent(self, store, make_entry):
        entry = make_entry()
        store.insert(entry)
        store.delete(entry)
        store.delete(entry)
        assert store.get(entry.id) is None

    def test_writes_survive_reopen(self, tmp_path, make_entry):
        path = tmp_path / "journal.sqlite3"
        first = EntryStore(path)
        entry = make_entry(completed=True)
        first.insert(entry)
        first.close()

        second = EntryStore(path)
        try:
            assert second.get(entry.id) == entry
        finally:
            second.close()


class TestQueries:
    def test_get_by_date(self, store, make_entry):
        entry = make_entry("2024-03-02")
        store.insert(entry)
        assert store.get_by_date("user-1", dt.date(2024, 3, 2)) == entry
        assert store.get_by_date("user-1", dt.date(2024, 3, 3)) is None
        assert store.get_by_date("other", dt.date(2024, 3, 2)) is None

    def test_query_range_is_half_open_and_ordered(self, store, make_entry):
        for day in ("2024-03-05", "2024-02-29", "2024-03-01", "2024-04-01"):
            store.insert(make_entry(day))
        found = store.query(dt.date(2024, 3, 1), dt.date(2024, 4, 1))
        assert [e.date_key for e in found] == ["2024-03-01", "2024-03-05"]

    def test_query_descending(self, store, make_entry):
        for day in ("2024-03-01", "2024-03-02"):
            store.insert(make_entry(day))
        found = store.query(descending=True)
        assert [e.date_key for e in found] == ["2024-03-02", "2024-03-01"]

    def test_query_filters(self, store, make_entry):
        store.insert(make_entry("2024-03-01"))
        store.insert(make_entry("2024-03-02", completed=True))
        store.insert(make_entry("2024-03-03", completed=True, needs_sync=False))
        pending = store.query(user_id="user-1", needs_sync=True, is_completed=True)
        assert [e.date_key for e in pending] == ["2024-03-02"]
        assert store.count(is_completed=False) == 1

    def test_query_predicate(self, store, make_entry):
        store.insert(make_entry("2024-03-01", journal="rain"))
        store.insert(make_entry("2024-03-02", journal="sun"))
        found = store.query(predicate=lambda e: "sun" in e.journal_content)
        assert [e.date_key for e in found] == ["2024-03-02"]


class TestFailures:
    def test_sqlite_errors_become_storage_errors(self, store, make_entry):
        conn = MagicMock()
        conn.execute.side_effect = sqlite3.OperationalError("disk I/O error")
        store._conn = conn
        with pytest.raises(StorageError):
            store.query()

    def test_unopenable_path_raises_storage_error(self, tmp_path):
        target = tmp_path / "is-a-dir"
        target.mkdir()
        with pytest.raises(StorageError):
            EntryStore(target)

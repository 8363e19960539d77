"""Tests for the JSON settings store (cursor and tombstones)."""

import datetime as dt
import json
import os
from unittest.mock import patch

import pytest

from goodnight_journal.errors import StorageError
from goodnight_journal.store.settings import (
    LAST_PULL_AT,
    SettingsStore,
)


def test_missing_file_starts_empty(tmp_path):
    settings = SettingsStore(tmp_path / "settings.json")
    assert settings.get(LAST_PULL_AT) is None
    assert settings.get_timestamp(LAST_PULL_AT) is None
    assert settings.pending_deletes() == []


def test_timestamp_persists_across_instances(tmp_path):
    path = tmp_path / "settings.json"
    stamp = dt.datetime(2024, 3, 1, 21, 0, tzinfo=dt.timezone.utc)
    SettingsStore(path).set_timestamp(LAST_PULL_AT, stamp)

    reloaded = SettingsStore(path)
    assert reloaded.get_timestamp(LAST_PULL_AT) == stamp
    assert json.loads(path.read_text())[LAST_PULL_AT] == stamp.isoformat()


def test_update_writes_several_keys(tmp_path):
    path = tmp_path / "settings.json"
    SettingsStore(path).update({"a": 1, "b": "two"})
    reloaded = SettingsStore(path)
    assert reloaded.get("a") == 1
    assert reloaded.get("b") == "two"


def test_write_leaves_no_temp_files(tmp_path):
    settings = SettingsStore(tmp_path / "settings.json")
    settings.set("k", "v")
    assert [p.name for p in tmp_path.iterdir()] == ["settings.json"]


def test_failed_replace_keeps_previous_file(tmp_path):
    path = tmp_path / "settings.json"
    settings = SettingsStore(path)
    settings.set("k", "old")

    with patch("goodnight_journal.store.settings.os.replace", side_effect=OSError("full")):
        with pytest.raises(StorageError):
            settings.set("k", "new")

    assert json.loads(path.read_text())["k"] == "old"
    assert not [p for p in tmp_path.iterdir() if p.suffix == ".tmp"]


def test_corrupt_file_raises_storage_error(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json")
    with pytest.raises(StorageError):
        SettingsStore(path)


class TestPendingDeletes:
    def test_add_and_remove(self, tmp_path):
        settings = SettingsStore(tmp_path / "settings.json")
        settings.add_pending_delete("u1", "2024-03-01")
        settings.add_pending_delete("u1", "2024-03-01")
        settings.add_pending_delete("u2", "2024-03-01")
        assert settings.pending_deletes() == [
            ("u1", "2024-03-01"),
            ("u2", "2024-03-01"),
        ]

        settings.remove_pending_delete("u1", "2024-03-01")
        settings.remove_pending_delete("u1", "2024-03-09")
        assert settings.pending_deletes() == [("u2", "2024-03-01")]

    def test_tombstones_survive_restart(self, tmp_path):
        path = tmp_path / "settings.json"
        SettingsStore(path).add_pending_delete("u1", "2024-03-01")
        assert SettingsStore(path).pending_deletes() == [("u1", "2024-03-01")]


@pytest.mark.skipif(os.geteuid() == 0, reason="root ignores directory permissions")
def test_unwritable_directory_raises_storage_error(tmp_path):
    locked = tmp_path / "locked"
    locked.mkdir()
    locked.chmod(0o500)
    try:
        settings = SettingsStore(locked / "settings.json")
        with pytest.raises(StorageError):
            settings.set("k", "v")
    finally:
        locked.chmod(0o700)

"""Tests for the JournalEntry model and its state transitions."""

import datetime as dt

import pytest
from pydantic import ValidationError

from goodnight_journal.models import JournalEntry, date_key

DAY = dt.date(2024, 3, 1)
T0 = dt.datetime(2024, 3, 1, 20, 0, tzinfo=dt.timezone.utc)
T1 = T0 + dt.timedelta(minutes=5)


class TestConstruction:
    def test_new_draft_defaults(self):
        entry = JournalEntry.new_draft("u1", DAY, letters=["A", "B", "C"], now=T0)
        assert entry.is_draft
        assert not entry.needs_sync
        assert entry.letters == ["A", "B", "C"]
        assert entry.last_modified == T0
        assert entry.id

    def test_ids_are_unique(self):
        a = JournalEntry.new_draft("u1", DAY)
        b = JournalEntry.new_draft("u1", DAY)
        assert a.id != b.id

    def test_date_key_format(self):
        assert date_key(dt.date(2024, 1, 5)) == "2024-01-05"
        assert JournalEntry(date=DAY).date_key == "2024-03-01"

    def test_naive_timestamp_becomes_utc(self):
        entry = JournalEntry(date=DAY, last_modified=dt.datetime(2024, 3, 1, 12))
        assert entry.last_modified.tzinfo is dt.timezone.utc

    def test_more_than_three_letters_rejected(self):
        with pytest.raises(ValidationError):
            JournalEntry(date=DAY, letters=["A", "B", "C", "D"])

    def test_multi_character_letter_rejected(self):
        with pytest.raises(ValidationError):
            JournalEntry(date=DAY, letters=["AB"])

    def test_entries_are_immutable(self):
        entry = JournalEntry(date=DAY)
        with pytest.raises(ValidationError):
            entry.journal_content = "changed"


class TestTransitions:
    def test_editing_draft_keeps_needs_sync_false(self):
        draft = JournalEntry.new_draft("u1", DAY, now=T0)
        edited = draft.with_content(journal_content="hello", now=T1)
        assert edited.journal_content == "hello"
        assert edited.last_modified == T1
        assert not edited.needs_sync
        assert edited.id == draft.id

    def test_with_content_only_changes_given_fields(self):
        draft = JournalEntry.new_draft(
            "u1", DAY, letters=["A"], poem_content="poem", now=T0
        )
        edited = draft.with_content(journal_content="j", now=T1)
        assert edited.poem_content == "poem"
        assert edited.letters == ["A"]

    def test_completed_sets_flags(self):
        done = JournalEntry.new_draft("u1", DAY, now=T0).completed(T1)
        assert done.is_completed
        assert done.needs_sync
        assert done.last_modified == T1

    def test_editing_completed_entry_needs_sync_again(self):
        done = JournalEntry.new_draft("u1", DAY, now=T0).completed(T0).mark_synced()
        assert not done.needs_sync
        edited = done.with_content(journal_content="more", now=T1)
        assert edited.needs_sync
        assert edited.is_completed

    def test_with_remote_takes_content_keeps_identity(self):
        local = JournalEntry.new_draft("u1", DAY, journal_content="local", now=T0)
        remote = JournalEntry(
            date=DAY,
            user_id="u1",
            journal_content="remote",
            letters=["Z"],
            last_modified=T1,
            is_completed=True,
        )
        merged = local.with_remote(remote)
        assert merged.id == local.id
        assert merged.journal_content == "remote"
        assert merged.letters == ["Z"]
        assert merged.is_completed
        assert merged.last_modified == T1
        assert not merged.needs_sync

    def test_content_equals_ignores_identity_and_time(self):
        a = JournalEntry(date=DAY, journal_content="x", last_modified=T0)
        b = JournalEntry(date=DAY, journal_content="x", last_modified=T1)
        assert a.content_equals(b)
        assert not a.content_equals(b.with_content(journal_content="y"))

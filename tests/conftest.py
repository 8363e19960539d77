"""Shared pytest fixtures for goodnight-journal tests."""

from __future__ import annotations

import datetime as dt
from collections.abc import Callable

import pytest
from dotenv import load_dotenv

from goodnight_journal.identity import StaticIdentity
from goodnight_journal.journal import JournalService
from goodnight_journal.models import JournalEntry
from goodnight_journal.store.entries import EntryStore
from goodnight_journal.store.settings import SettingsStore
from goodnight_journal.sync.engine import SyncEngine

load_dotenv()

USER = "user-1"
START = dt.datetime(2024, 3, 1, 21, 0, tzinfo=dt.timezone.utc)


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live Firestore project",
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Controllable clock returning aware UTC datetimes."""

    def __init__(self, start: dt.datetime = START) -> None:
        self.now = start

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs) -> dt.datetime:
        self.now += dt.timedelta(**kwargs)
        return self.now


class FakeRemoteRepository:
    """In-memory remote repository keyed by (user_id, date_key).

    Failure injection:
        ``fail_with``: raised by every call while set.
        ``fail_upsert``: ``date_key -> exception`` raised by ``upsert``.
        ``on_upsert``: callback run inside ``upsert`` before the write,
        to simulate edits landing while a push is in flight.
    """

    def __init__(self) -> None:
        self.docs: dict[tuple[str, str], JournalEntry] = {}
        self.calls: list[tuple] = []
        self.fail_with: Exception | None = None
        self.fail_upsert: dict[str, Exception] = {}
        self.on_upsert: Callable[[JournalEntry], None] | None = None

    def put(self, entry: JournalEntry) -> JournalEntry:
        """Seed a remote document directly."""
        self.docs[(entry.user_id, entry.date_key)] = entry
        return entry

    def get(self, user_id: str, key: str) -> JournalEntry | None:
        return self.docs.get((user_id, key))

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def upsert(self, entry: JournalEntry) -> None:
        self.calls.append(("upsert", entry.user_id, entry.date_key))
        self._check()
        if entry.date_key in self.fail_upsert:
            raise self.fail_upsert[entry.date_key]
        if self.on_upsert is not None:
            self.on_upsert(entry)
        self.docs[(entry.user_id, entry.date_key)] = entry.model_copy(
            update={"needs_sync": False}
        )

    def fetch(self, user_id: str, day: dt.date) -> JournalEntry | None:
        self.calls.append(("fetch", user_id, day.isoformat()))
        self._check()
        return self.docs.get((user_id, day.isoformat()))

    def fetch_completed_since(
        self, user_id: str, since: dt.datetime | None = None
    ) -> list[JournalEntry]:
        self.calls.append(("fetch_completed_since", user_id, since))
        self._check()
        found = [
            e
            for (owner, _), e in self.docs.items()
            if owner == user_id
            and e.is_completed
            and (since is None or e.last_modified > since)
        ]
        return sorted(found, key=lambda e: e.last_modified, reverse=True)

    def delete(self, user_id: str, day: dt.date) -> None:
        self.calls.append(("delete", user_id, day.isoformat()))
        self._check()
        self.docs.pop((user_id, day.isoformat()), None)

    def upserted_keys(self) -> list[str]:
        return [key for op, _, key in self.calls if op == "upsert"]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def identity():
    return StaticIdentity(USER, "test-token")


@pytest.fixture
def store(tmp_path):
    entry_store = EntryStore(tmp_path / "journal.sqlite3")
    yield entry_store
    entry_store.close()


@pytest.fixture
def settings(tmp_path):
    return SettingsStore(tmp_path / "settings.json")


@pytest.fixture
def remote():
    return FakeRemoteRepository()


@pytest.fixture
def engine(store, remote, settings, identity, clock):
    return SyncEngine(store, remote, settings, identity, clock=clock)


@pytest.fixture
def service(store, engine, identity, clock):
    return JournalService(
        store,
        engine,
        identity,
        autosave_delay=0.01,
        tz=dt.timezone.utc,
        clock=clock,
    )


@pytest.fixture
def make_entry(clock):
    """Factory for entries owned by the test user."""

    def _make(
        day: str | dt.date = "2024-03-01",
        *,
        completed: bool = False,
        needs_sync: bool | None = None,
        journal: str = "",
        poem: str = "",
        letters: list[str] | None = None,
        modified: dt.datetime | None = None,
        user_id: str = USER,
    ) -> JournalEntry:
        if isinstance(day, str):
            day = dt.date.fromisoformat(day)
        return JournalEntry(
            date=day,
            user_id=user_id,
            journal_content=journal,
            poem_content=poem,
            letters=letters or [],
            last_modified=modified or clock(),
            is_completed=completed,
            needs_sync=completed if needs_sync is None else needs_sync,
        )

    return _make

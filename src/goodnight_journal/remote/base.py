"""Remote entry repository contract."""

from __future__ import annotations

import datetime as dt
from typing import Protocol

from goodnight_journal.errors import RemoteError
from goodnight_journal.models import JournalEntry


class RemoteEntryRepository(Protocol):
    """Cloud document collection of journal entries keyed by (user, day).

    Implementations are synchronous and may block on the network; the
    sync engine runs them in worker threads.  Every method may raise
    ``NetworkError`` or ``AuthError``.
    """

    def upsert(self, entry: JournalEntry) -> None:
        """Merge-write *entry* to its (user, day) document.

        Fields in the payload overwrite remote fields; fields the payload
        does not carry are left untouched.
        """
        ...  # pragma: no cover

    def fetch(self, user_id: str, day: dt.date) -> JournalEntry | None:
        """Point lookup by natural key; ``None`` when absent."""
        ...  # pragma: no cover

    def fetch_completed_since(
        self, user_id: str, since: dt.datetime | None = None
    ) -> list[JournalEntry]:
        """Completed entries with ``last_modified > since``, newest first.

        With ``since=None`` every completed entry is returned.  Documents
        that cannot be decoded are logged and left out.
        """
        ...  # pragma: no cover

    def delete(self, user_id: str, day: dt.date) -> None:
        """Remove the (user, day) document.  Absent documents are fine."""
        ...  # pragma: no cover


class OfflineRepository:
    """Stand-in used when no remote project is configured.

    Every call fails with ``RemoteError``, which the sync engine records
    and defers like any other remote failure, so local-only use
    (journaling, ``status``) keeps working.
    """

    def _unavailable(self, *args, **kwargs):
        raise RemoteError("No remote repository configured")

    upsert = fetch = fetch_completed_since = delete = _unavailable

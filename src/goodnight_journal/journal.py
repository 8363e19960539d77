"""Journal service: the seam between the editor UI and the local store.

Interactive operations (open, autosave, submit, delete, calendar
queries) always run against the local entry store and never wait on the
network.  The service calls into the sync engine only to push a freshly
submitted entry, to propagate a delete, and for manual refresh; those
remote steps are best effort and their failures are deferred to the next
automatic sync.

Local persistence failures are raised to the caller as ``StorageError``
so the user can retry.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
import random
from collections.abc import Callable

from goodnight_journal.core.async_utils import Debouncer
from goodnight_journal.errors import EntryNotFoundError, StorageError
from goodnight_journal.identity import IdentityProvider, require_user_id
from goodnight_journal.layout import generate_letters, parse_journal_text
from goodnight_journal.models import JournalEntry, date_key, utc_now
from goodnight_journal.store.entries import EntryStore
from goodnight_journal.sync.engine import SyncEngine
from goodnight_journal.sync.models import SyncReport

logger = logging.getLogger(__name__)


class JournalService:
    """Day-oriented journal operations for the signed-in user.

    Args:
        store: Local entry store.
        engine: Sync engine used for submit pushes, deletes and refresh.
        identity: Source of the signed-in user id.
        autosave_delay: Debounce delay for ``schedule_autosave``.
        tz: Zone that defines "today"; host zone when ``None``.
        clock: Returns the current aware time; injectable for tests.
    """

    def __init__(
        self,
        store: EntryStore,
        engine: SyncEngine,
        identity: IdentityProvider,
        *,
        autosave_delay: float = 1.0,
        tz: dt.tzinfo | None = None,
        clock: Callable[[], dt.datetime] = utc_now,
    ) -> None:
        self.store = store
        self.engine = engine
        self.identity = identity
        self.tz = tz
        self._clock = clock
        self._autosave = Debouncer(autosave_delay)

    def today(self) -> dt.date:
        """Current calendar day in the journal's time zone."""
        return self._clock().astimezone(self.tz).date()

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def open_day(
        self, day: dt.date | None = None, rng: random.Random | None = None
    ) -> JournalEntry:
        """Return the stored entry for *day*, or an unsaved fresh draft.

        The fresh draft carries newly generated starter letters; it is
        only written once content is saved.
        """
        user_id = require_user_id(self.identity)
        day = day or self.today()
        existing = self.store.get_by_date(user_id, day)
        if existing is not None:
            return existing
        return JournalEntry.new_draft(
            user_id, day, letters=generate_letters(rng), now=self._clock()
        )

    def has_entry(self, day: dt.date | None = None) -> bool:
        """Whether an entry (draft or completed) exists for *day*."""
        user_id = require_user_id(self.identity)
        return self.store.get_by_date(user_id, day or self.today()) is not None

    def entries_for_month(self, year: int, month: int) -> list[JournalEntry]:
        """Entries for the calendar month, oldest first."""
        user_id = require_user_id(self.identity)
        start = dt.date(year, month, 1)
        end = (
            dt.date(year + 1, 1, 1)
            if month == 12
            else dt.date(year, month + 1, 1)
        )
        return self.store.query(start, end, user_id=user_id)

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def save_draft(
        self,
        day: dt.date,
        *,
        poem_content: str | None = None,
        letters: list[str] | None = None,
        journal_content: str | None = None,
    ) -> JournalEntry:
        """Persist content for *day*, creating the entry on first save.

        Draft saves stay local and leave ``needs_sync`` alone; saving a
        completed entry marks it for another push.

        Raises:
            StorageError: The write did not commit.
        """
        user_id = require_user_id(self.identity)
        now = self._clock()
        current = self.store.get_by_date(user_id, day)
        if current is None:
            entry = JournalEntry.new_draft(
                user_id,
                day,
                letters=letters or [],
                poem_content=poem_content or "",
                journal_content=journal_content or "",
                now=now,
            )
            self.store.insert(entry)
        else:
            entry = current.with_content(
                poem_content=poem_content,
                letters=letters,
                journal_content=journal_content,
                now=now,
            )
            self.store.update(entry)
        return entry

    def save_text(
        self, day: dt.date, text: str, letters: list[str] | None = None
    ) -> JournalEntry:
        """Parse editor text and save it as the entry's content."""
        poem, journal = parse_journal_text(text)
        return self.save_draft(
            day, poem_content=poem, letters=letters, journal_content=journal
        )

    def schedule_autosave(
        self, day: dt.date, text: str, letters: list[str] | None = None
    ) -> asyncio.Task:
        """Debounced ``save_text``; a newer request for the day supersedes it."""

        async def _save() -> JournalEntry:
            try:
                return self.save_text(day, text, letters)
            except StorageError:
                logger.error("Autosave of %s failed", date_key(day), exc_info=True)
                raise

        return self._autosave.schedule(date_key(day), _save)

    async def flush_autosaves(self) -> None:
        await self._autosave.flush()

    # ------------------------------------------------------------------
    # Submit / delete / refresh
    # ------------------------------------------------------------------

    async def submit(
        self,
        day: dt.date,
        text: str | None = None,
        letters: list[str] | None = None,
    ) -> JournalEntry:
        """Finalize the entry for *day* and try to push it right away.

        The entry is durably completed locally before any network call;
        a failed push is logged and retried by the next automatic sync.
        Without *text*, a still-waiting autosave for the day is written
        first so the latest edits are the ones submitted.

        Raises:
            EntryNotFoundError: Nothing has been saved for *day*.
            StorageError: The local write did not commit.
        """
        if text is None:
            await self._autosave.run_now(date_key(day))
        else:
            self._autosave.cancel(date_key(day))
            self.save_text(day, text, letters)

        user_id = require_user_id(self.identity)
        current = self.store.get_by_date(user_id, day)
        if current is None:
            raise EntryNotFoundError(f"No entry to submit for {date_key(day)}")

        entry = current.completed(self._clock())
        self.store.update(entry)
        logger.info("Submitted entry for %s", entry.date_key)

        result = await self.engine.push_entry(entry)
        if not result.success:
            logger.info(
                "Entry %s saved locally; cloud push deferred (%s)",
                entry.date_key,
                result.error,
            )
        return self.store.get(entry.id) or entry

    async def delete(self, entry: JournalEntry) -> None:
        """Delete *entry* locally, and remotely if it had been submitted."""
        self._autosave.cancel(entry.date_key)
        self.store.delete(entry)
        logger.info("Deleted entry for %s", entry.date_key)
        if entry.is_completed:
            await self.engine.delete_remote(entry)

    async def refresh(self, day: dt.date | None = None) -> SyncReport:
        """Manually re-fetch one day from the cloud."""
        return await self.engine.refresh_entry(day or self.today())

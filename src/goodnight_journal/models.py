"""Journal entry data model.

``JournalEntry`` is the only persisted entity.  It is a frozen pydantic
model: every mutation produces a new instance via one of the helper
methods below, and the caller persists the result through the entry
store.  The helpers keep the flag invariants in one place:

* content or completion changes always stamp ``last_modified``;
* edits to a draft never touch ``needs_sync`` (drafts stay local);
* edits to a completed entry and submission set ``needs_sync``;
* ``needs_sync`` is only cleared by ``mark_synced()`` or by taking over
  a remote copy.
"""

from __future__ import annotations

import datetime as dt
import uuid

from pydantic import BaseModel, Field, field_validator

MAX_LETTERS = 3


def utc_now() -> dt.datetime:
    """Return the current time as an aware UTC datetime."""
    return dt.datetime.now(dt.timezone.utc)


def date_key(day: dt.date) -> str:
    """Format *day* as the remote document key (``YYYY-MM-DD``)."""
    return day.strftime("%Y-%m-%d")


class JournalEntry(BaseModel):
    """One user's journal entry for one calendar day.

    Attributes:
        id: Opaque unique identifier, assigned at creation.
        date: Calendar day; together with ``user_id`` the natural key.
        poem_content: Legacy free-form poem text.
        letters: Poem-starter letters, zero to three single characters.
        journal_content: Primary free-form content.
        last_modified: Aware timestamp of the last content change.
        user_id: Owner identifier.
        is_completed: ``False`` while a draft, ``True`` once submitted.
        needs_sync: ``True`` while local content has not been confirmed
            pushed to the remote repository.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    date: dt.date
    poem_content: str = ""
    letters: list[str] = Field(default_factory=list)
    journal_content: str = ""
    last_modified: dt.datetime = Field(default_factory=utc_now)
    user_id: str = ""
    is_completed: bool = False
    needs_sync: bool = False

    model_config = {"frozen": True}

    @field_validator("letters")
    @classmethod
    def _check_letters(cls, value: list[str]) -> list[str]:
        if len(value) > MAX_LETTERS:
            raise ValueError(
                f"at most {MAX_LETTERS} letters allowed, got {len(value)}"
            )
        for letter in value:
            if len(letter) != 1:
                raise ValueError(
                    f"letters must be single characters, got {letter!r}"
                )
        return value

    @field_validator("last_modified")
    @classmethod
    def _ensure_aware(cls, value: dt.datetime) -> dt.datetime:
        # Naive timestamps are taken to be UTC so comparisons never mix
        # aware and naive values.
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.timezone.utc)
        return value

    @property
    def date_key(self) -> str:
        """Remote document key for this entry's day."""
        return date_key(self.date)

    @property
    def is_draft(self) -> bool:
        return not self.is_completed

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def new_draft(
        cls,
        user_id: str,
        day: dt.date,
        *,
        letters: list[str] | None = None,
        poem_content: str = "",
        journal_content: str = "",
        now: dt.datetime | None = None,
    ) -> JournalEntry:
        """Create a fresh local draft.  Drafts start with ``needs_sync=False``."""
        return cls(
            date=day,
            user_id=user_id,
            letters=list(letters or []),
            poem_content=poem_content,
            journal_content=journal_content,
            last_modified=now or utc_now(),
        )

    # ------------------------------------------------------------------
    # Mutations (return new instances)
    # ------------------------------------------------------------------

    def with_content(
        self,
        *,
        poem_content: str | None = None,
        letters: list[str] | None = None,
        journal_content: str | None = None,
        now: dt.datetime | None = None,
    ) -> JournalEntry:
        """Return a copy with updated content fields.

        Only fields passed explicitly are changed.  A completed entry
        that is edited must be pushed again, so ``needs_sync`` is set;
        a draft keeps whatever flag it had.
        """
        update: dict = {"last_modified": now or utc_now()}
        if poem_content is not None:
            update["poem_content"] = poem_content
        if letters is not None:
            update["letters"] = list(letters)
        if journal_content is not None:
            update["journal_content"] = journal_content
        if self.is_completed:
            update["needs_sync"] = True
        return self._copy_validated(update)

    def completed(self, now: dt.datetime | None = None) -> JournalEntry:
        """Return the submitted (finalized) form of this entry."""
        return self._copy_validated(
            {
                "is_completed": True,
                "needs_sync": True,
                "last_modified": now or utc_now(),
            }
        )

    def mark_synced(self) -> JournalEntry:
        """Return a copy with ``needs_sync`` cleared after a confirmed push."""
        return self.model_copy(update={"needs_sync": False})

    def with_remote(self, remote: JournalEntry) -> JournalEntry:
        """Return this entry overwritten by *remote*'s content.

        Identity (``id``, ``date``, ``user_id``) stays local; content,
        completion and ``last_modified`` come from the remote copy, and
        the result is in sync by definition.
        """
        return self._copy_validated(
            {
                "poem_content": remote.poem_content,
                "letters": list(remote.letters),
                "journal_content": remote.journal_content,
                "last_modified": remote.last_modified,
                "is_completed": remote.is_completed,
                "needs_sync": False,
            }
        )

    def content_equals(self, other: JournalEntry) -> bool:
        """Compare the synced content fields of two entries."""
        return (
            self.poem_content == other.poem_content
            and self.letters == other.letters
            and self.journal_content == other.journal_content
            and self.is_completed == other.is_completed
        )

    def _copy_validated(self, update: dict) -> JournalEntry:
        data = self.model_dump()
        data.update(update)
        return JournalEntry(**data)

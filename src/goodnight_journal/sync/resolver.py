"""Conflict policy for merging pulled entries into the local store.

Conflicts are resolved at whole-entry granularity:

- no local entry          -> insert the remote copy;
- local draft             -> the completed remote copy always wins;
- local completed         -> last writer wins on ``last_modified``;
  an exact tie keeps the local copy.

Remote entries that are not completed are never taken over; drafts do
not travel between devices.
"""

from __future__ import annotations

from enum import Enum

from goodnight_journal.models import JournalEntry


class PullDecision(str, Enum):
    """What to do with one pulled remote entry."""

    INSERT = "insert"
    OVERWRITE = "overwrite"
    KEEP_LOCAL = "keep_local"
    IGNORE = "ignore"


def resolve_pull(
    local: JournalEntry | None, remote: JournalEntry
) -> PullDecision:
    """Decide how *remote* merges into the local store.

    Args:
        local: The local entry for the same (user, day), if any.
        remote: The pulled remote entry.

    Returns:
        The ``PullDecision`` to apply.
    """
    if not remote.is_completed:
        return PullDecision.IGNORE if local is None else PullDecision.KEEP_LOCAL

    if local is None:
        return PullDecision.INSERT

    if local.is_draft:
        return PullDecision.OVERWRITE

    if remote.last_modified > local.last_modified:
        return PullDecision.OVERWRITE

    return PullDecision.KEEP_LOCAL

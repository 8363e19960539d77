"""Poem-starter text layout.

A new day's editor text is pre-filled with three random starter
letters::

    Today's poem

    A
    B
    C


    Today's journal

The editor works on that single text block; ``parse_journal_text``
splits it back into the poem and journal fields stored on the entry.
"""

from __future__ import annotations

import random

POEM_HEADING = "Today's poem"
JOURNAL_HEADING = "Today's journal"

# Letters that start a line comfortably; J, Q, U, V, X, Y, Z are left out.
STARTER_LETTERS = "ABCDEFGHIKLMNOPRSTW"


def generate_letters(
    rng: random.Random | None = None, count: int = 3
) -> list[str]:
    """Pick *count* starter letters (repeats allowed)."""
    rng = rng or random.Random()
    return [rng.choice(STARTER_LETTERS) for _ in range(count)]


def compose_journal_text(letters: list[str], journal_content: str = "") -> str:
    """Render the editor text for an entry."""
    return (
        f"{POEM_HEADING}\n\n"
        + "\n".join(letters)
        + f"\n\n\n{JOURNAL_HEADING}\n\n"
        + journal_content
    )


def parse_journal_text(text: str) -> tuple[str, str]:
    """Split editor text into ``(poem_content, journal_content)``.

    Everything before the journal heading (minus the poem heading) is the
    poem; everything after it is the journal.  Both are whitespace
    trimmed.  Text without a journal heading is all journal.
    """
    head, sep, tail = text.partition(JOURNAL_HEADING)
    if not sep:
        return "", text
    poem = head.replace(POEM_HEADING, "").strip()
    return poem, tail.strip()

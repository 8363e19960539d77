"""Firestore REST document codec for journal entries.

Firestore's REST API wraps every field in a typed value object
(``{"stringValue": "..."}``, ``{"timestampValue": "..."}``, ...).  This
module converts between those documents and ``JournalEntry``.

Wire layout of an entry document::

    id              stringValue
    date            timestampValue   local midnight of the entry's day
    poemContent     stringValue
    letters         arrayValue of stringValue
    journalContent  stringValue
    lastModified    timestampValue
    userId          stringValue
    isCompleted     booleanValue
    needsSync       booleanValue     informational only

The calendar day is taken from the document id (``YYYY-MM-DD``) when
available, since converting a midnight timestamp back through a
different time zone could land on the neighbouring day.
"""

from __future__ import annotations

import datetime as dt
import re
from typing import Any

from goodnight_journal.errors import RemoteError
from goodnight_journal.models import JournalEntry

ENTRY_FIELDS = (
    "id",
    "date",
    "poemContent",
    "letters",
    "journalContent",
    "lastModified",
    "userId",
    "isCompleted",
    "needsSync",
)

_REQUIRED_FIELDS = (
    "id",
    "date",
    "poemContent",
    "letters",
    "journalContent",
    "lastModified",
    "userId",
)

_DATE_KEY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
# Firestore emits up to nanosecond precision; datetime holds microseconds.
_FRACTION = re.compile(r"\.(\d{6})\d*")


def local_timezone() -> dt.tzinfo:
    """Return the host's current local time zone."""
    return dt.datetime.now().astimezone().tzinfo  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def format_timestamp(value: dt.datetime) -> str:
    """Format an aware datetime as an RFC 3339 UTC timestamp."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    utc = value.astimezone(dt.timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_timestamp(raw: str) -> dt.datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Raises:
        RemoteError: *raw* is not a valid timestamp.
    """
    text = _FRACTION.sub(lambda m: "." + m.group(1), raw)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = dt.datetime.fromisoformat(text)
    except ValueError as exc:
        raise RemoteError(f"Invalid timestamp {raw!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed.astimezone(dt.timezone.utc)


def day_start(day: dt.date, tz: dt.tzinfo | None = None) -> dt.datetime:
    """Return local midnight of *day* in *tz* (host zone by default)."""
    return dt.datetime.combine(day, dt.time(), tzinfo=tz or local_timezone())


# ---------------------------------------------------------------------------
# Typed values
# ---------------------------------------------------------------------------


def encode_value(value: Any) -> dict[str, Any]:
    """Wrap a Python value in a Firestore typed value object."""
    match value:
        case bool():
            return {"booleanValue": value}
        case int():
            return {"integerValue": str(value)}
        case float():
            return {"doubleValue": value}
        case str():
            return {"stringValue": value}
        case dt.datetime():
            return {"timestampValue": format_timestamp(value)}
        case list() | tuple():
            if not value:
                return {"arrayValue": {}}
            return {
                "arrayValue": {"values": [encode_value(v) for v in value]}
            }
        case None:
            return {"nullValue": None}
        case _:
            raise TypeError(
                f"Cannot encode {type(value).__name__} as a Firestore value"
            )


def decode_value(value: dict[str, Any]) -> Any:
    """Unwrap a Firestore typed value object."""
    if not value:
        raise RemoteError("Empty Firestore value")
    kind, raw = next(iter(value.items()))
    match kind:
        case "stringValue" | "booleanValue" | "doubleValue":
            return raw
        case "integerValue":
            return int(raw)
        case "timestampValue":
            return parse_timestamp(raw)
        case "arrayValue":
            return [decode_value(v) for v in raw.get("values", [])]
        case "nullValue":
            return None
        case _:
            raise RemoteError(f"Unsupported Firestore value type {kind!r}")


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


def encode_entry(
    entry: JournalEntry,
    user_id: str | None = None,
    tz: dt.tzinfo | None = None,
) -> dict[str, Any]:
    """Build the ``{"fields": ...}`` body for *entry*.

    Args:
        entry: Entry to encode.
        user_id: Authenticated user id written as ``userId``; defaults
            to ``entry.user_id``.
        tz: Zone used for the ``date`` midnight timestamp.
    """
    values = {
        "id": entry.id,
        "date": day_start(entry.date, tz),
        "poemContent": entry.poem_content,
        "letters": list(entry.letters),
        "journalContent": entry.journal_content,
        "lastModified": entry.last_modified,
        "userId": user_id or entry.user_id,
        "isCompleted": entry.is_completed,
        "needsSync": entry.needs_sync,
    }
    return {"fields": {k: encode_value(v) for k, v in values.items()}}


def decode_document(
    document: dict[str, Any], tz: dt.tzinfo | None = None
) -> JournalEntry:
    """Convert a Firestore document resource into a ``JournalEntry``.

    Raises:
        RemoteError: Required fields are missing or malformed.
    """
    fields = document.get("fields", {})
    missing = [name for name in _REQUIRED_FIELDS if name not in fields]
    if missing:
        raise RemoteError(
            f"Document {document.get('name', '?')} is missing fields: "
            f"{', '.join(missing)}"
        )
    data = {name: decode_value(fields[name]) for name in fields}

    doc_id = document.get("name", "").rsplit("/", 1)[-1]
    try:
        if _DATE_KEY.match(doc_id):
            day = dt.date.fromisoformat(doc_id)
        else:
            day = data["date"].astimezone(tz or local_timezone()).date()
        return JournalEntry(
            id=data["id"],
            date=day,
            poem_content=data["poemContent"],
            letters=data["letters"],
            journal_content=data["journalContent"],
            last_modified=data["lastModified"],
            user_id=data["userId"],
            is_completed=bool(data.get("isCompleted", False)),
            needs_sync=bool(data.get("needsSync", False)),
        )
    except (ValueError, AttributeError) as exc:
        raise RemoteError(
            f"Document {document.get('name', '?')} is malformed: {exc}"
        ) from exc

"""Firestore REST implementation of the remote entry repository.

Documents live at ``users/{uid}/entries/{YYYY-MM-DD}`` under the
project's database.  Requests go through a thread-local
``requests.Session`` because the sync engine calls the repository from
worker threads.

Status mapping:

* no token, 401, 403            -> ``AuthError``
* connection error, timeout,
  408, 429, 5xx                 -> ``NetworkError``
* any other non-2xx             -> ``RemoteError``

``fetch_completed_since`` needs a composite index on
(``isCompleted`` ASC, ``lastModified`` DESC) in the ``entries``
collection group.
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
from typing import Any

import requests

from goodnight_journal.errors import AuthError, NetworkError, RemoteError
from goodnight_journal.identity import IdentityProvider, require_user_id
from goodnight_journal.models import JournalEntry, date_key
from goodnight_journal.remote.codec import (
    ENTRY_FIELDS,
    decode_document,
    encode_entry,
    encode_value,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://firestore.googleapis.com/v1"
_RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}


class FirestoreEntryRepository:
    """Journal entries stored in Cloud Firestore, accessed over REST.

    Args:
        project_id: Google Cloud project id.
        identity: Source of the signed-in user and bearer token.
        database: Firestore database id.
        base_url: REST endpoint root (override for the emulator).
        timeout: ``(connect, read)`` timeouts in seconds.
        tz: Zone used for the ``date`` midnight timestamp.
        verify: Verify TLS certificates.
    """

    def __init__(
        self,
        project_id: str,
        identity: IdentityProvider,
        *,
        database: str = "(default)",
        base_url: str = DEFAULT_BASE_URL,
        timeout: tuple[float, float] = (10, 30),
        tz: dt.tzinfo | None = None,
        verify: bool = True,
    ) -> None:
        self.project_id = project_id
        self.identity = identity
        self.timeout = timeout
        self.tz = tz
        self.verify = verify
        self._thread_local = threading.local()
        self._documents_url = (
            f"{base_url.rstrip('/')}/projects/{project_id}"
            f"/databases/{database}/documents"
        )

    # ------------------------------------------------------------------
    # Repository operations
    # ------------------------------------------------------------------

    def upsert(self, entry: JournalEntry) -> None:
        """Merge-write *entry*; only the entry fields are overwritten."""
        user_id = self._require_owner(entry.user_id)
        body = encode_entry(entry, user_id=user_id, tz=self.tz)
        params = [("updateMask.fieldPaths", name) for name in ENTRY_FIELDS]
        self._request(
            "PATCH",
            self._entry_url(user_id, entry.date),
            params=params,
            json=body,
        )
        logger.debug("Upserted %s for user %s", entry.date_key, user_id)

    def fetch(self, user_id: str, day: dt.date) -> JournalEntry | None:
        """Return the remote entry for (*user_id*, *day*), or ``None``."""
        user_id = self._require_owner(user_id)
        response = self._request(
            "GET", self._entry_url(user_id, day), allow_not_found=True
        )
        if response is None:
            return None
        return decode_document(response.json(), tz=self.tz)

    def fetch_completed_since(
        self, user_id: str, since: dt.datetime | None = None
    ) -> list[JournalEntry]:
        """Run a structured query for completed entries, newest first."""
        user_id = self._require_owner(user_id)
        filters: list[dict[str, Any]] = [
            _field_filter("isCompleted", "EQUAL", True)
        ]
        if since is not None:
            filters.append(_field_filter("lastModified", "GREATER_THAN", since))
        where = (
            filters[0]
            if len(filters) == 1
            else {"compositeFilter": {"op": "AND", "filters": filters}}
        )
        body = {
            "structuredQuery": {
                "from": [{"collectionId": "entries"}],
                "where": where,
                "orderBy": [
                    {
                        "field": {"fieldPath": "lastModified"},
                        "direction": "DESCENDING",
                    }
                ],
            }
        }
        response = self._request(
            "POST",
            f"{self._documents_url}/users/{user_id}:runQuery",
            json=body,
        )
        entries = []
        for item in response.json():
            document = item.get("document")
            if document is None:
                # Result rows without a document carry only readTime.
                continue
            try:
                entries.append(decode_document(document, tz=self.tz))
            except RemoteError as exc:
                logger.warning("Skipping unreadable document: %s", exc)
        return entries

    def delete(self, user_id: str, day: dt.date) -> None:
        """Delete the (user, day) document; a missing document is fine."""
        user_id = self._require_owner(user_id)
        self._request(
            "DELETE", self._entry_url(user_id, day), allow_not_found=True
        )
        logger.debug("Deleted %s for user %s", date_key(day), user_id)

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    @property
    def session(self) -> requests.Session:
        """The calling thread's session."""
        if not hasattr(self._thread_local, "session"):
            session = requests.Session()
            session.verify = self.verify
            self._thread_local.session = session
        return self._thread_local.session

    def _entry_url(self, user_id: str, day: dt.date) -> str:
        return f"{self._documents_url}/users/{user_id}/entries/{date_key(day)}"

    def _require_owner(self, user_id: str) -> str:
        current = require_user_id(self.identity)
        if user_id and user_id != current:
            raise AuthError(
                f"Entry belongs to {user_id!r}, signed in as {current!r}"
            )
        return current

    def _request(
        self,
        method: str,
        url: str,
        *,
        allow_not_found: bool = False,
        **kwargs: Any,
    ) -> requests.Response | None:
        token = self.identity.id_token()
        if not token:
            raise AuthError("No ID token available for remote request")
        headers = {"Authorization": f"Bearer {token}"}

        try:
            response = self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as exc:
            raise NetworkError(f"{method} {url} failed: {exc}") from exc

        status = response.status_code
        if status == 404 and allow_not_found:
            return None
        if status in (401, 403):
            raise AuthError(f"{method} {url} rejected: HTTP {status}")
        if status in _RETRYABLE_STATUS:
            raise NetworkError(f"{method} {url} unavailable: HTTP {status}")
        if status >= 400:
            raise RemoteError(
                f"{method} {url} failed: HTTP {status} {response.text[:200]}"
            )
        return response


def _field_filter(field: str, op: str, value: Any) -> dict[str, Any]:
    return {
        "fieldFilter": {
            "field": {"fieldPath": field},
            "op": op,
            "value": encode_value(value),
        }
    }

"""Local-first sync engine.

The ``SyncEngine`` reconciles the local entry store with the remote
repository.  It:

1. Pushes completed entries flagged ``needs_sync``, oldest day first,
   clearing each flag as soon as its push is confirmed.
2. Pulls remote completed entries modified since the cursor and merges
   them with ``resolve_pull``.
3. Advances the pull cursor to the time the pull started, as the last
   step of a clean pull.
4. Retries remote deletes that could not be applied when the user
   deleted an entry.

Error handling is per entry: a failed push or merge is recorded in the
``SyncReport`` and the batch continues.  ``AuthError`` and local
``StorageError`` stop the current batch; nothing is marked synced and
the cursor is not advanced past work that was not durably applied.

Only one run (push, pull, sync or refresh) is in flight at a time; a
trigger that arrives while one is running is coalesced into a no-op
report.  Callers that need fresh data await ``wait_idle()``.

Known limitation: the cursor is the pull-start time read from the local
clock, so a remote write committed with a server timestamp earlier than
that clock reading, but not yet visible to the query, is skipped by the
next pull.  With one writer per document and low write volume this is
accepted.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from collections.abc import Awaitable, Callable

from goodnight_journal.connectivity import ConnectivityMonitor
from goodnight_journal.core.async_utils import run_sync
from goodnight_journal.errors import (
    AuthError,
    JournalError,
    RemoteError,
    StorageError,
    error_kind,
)
from goodnight_journal.identity import IdentityProvider, require_user_id
from goodnight_journal.models import JournalEntry, date_key, utc_now
from goodnight_journal.remote.base import RemoteEntryRepository
from goodnight_journal.store.entries import EntryStore
from goodnight_journal.store.settings import (
    LAST_PULL_AT,
    LAST_SYNC_AT,
    LAST_SYNC_ERROR,
    SettingsStore,
)
from goodnight_journal.sync.models import (
    SyncAction,
    SyncReport,
    SyncResult,
    SyncStatus,
)
from goodnight_journal.sync.resolver import PullDecision, resolve_pull

logger = logging.getLogger(__name__)

_BATCH_FATAL = ("auth", "storage")


class SyncEngine:
    """Push/pull orchestration between the entry store and the remote.

    Args:
        store: Local entry store.
        remote: Remote entry repository (blocking; run in threads).
        settings: Settings file holding the cursor and tombstones.
        identity: Source of the authenticated user id.
        monitor: Connectivity monitor consumed by ``run()``.
        clock: Returns the current aware time; injectable for tests.
    """

    def __init__(
        self,
        store: EntryStore,
        remote: RemoteEntryRepository,
        settings: SettingsStore,
        identity: IdentityProvider,
        *,
        monitor: ConnectivityMonitor | None = None,
        clock: Callable[[], dt.datetime] = utc_now,
    ) -> None:
        self.store = store
        self.remote = remote
        self.settings = settings
        self.identity = identity
        self.monitor = monitor
        self._clock = clock

        self._last_pull_at = settings.get_timestamp(LAST_PULL_AT)
        self._in_progress = False
        self._idle = asyncio.Event()
        self._idle.set()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_syncing(self) -> bool:
        return self._in_progress

    @property
    def last_pull_at(self) -> dt.datetime | None:
        """The persisted pull cursor."""
        return self._last_pull_at

    async def wait_idle(self) -> None:
        """Wait until no run is in flight."""
        await self._idle.wait()

    def status(self) -> SyncStatus:
        user_id = self.identity.current_user_id()
        pending = self.store.count(
            user_id=user_id, needs_sync=True, is_completed=True
        )
        return SyncStatus(
            is_syncing=self._in_progress,
            user_id=user_id,
            last_sync_at=self.settings.get(LAST_SYNC_AT),
            last_pull_at=(
                self._last_pull_at.isoformat() if self._last_pull_at else None
            ),
            last_error=self.settings.get(LAST_SYNC_ERROR),
            pending_count=pending,
            pending_deletes=len(self.settings.pending_deletes()),
        )

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    async def push_pending_entries(self) -> SyncReport:
        """Push every completed entry that needs sync."""
        return await self._exclusive("push", self._push)

    async def pull_completed_entries(self) -> SyncReport:
        """Pull remote completed entries changed since the cursor."""
        return await self._exclusive("pull", self._pull)

    async def sync_all(self) -> SyncReport:
        """Push, then pull, as one run."""
        return await self._exclusive("sync", self._sync)

    async def refresh_entry(self, day: dt.date) -> SyncReport:
        """Fetch one day from the remote and merge it.  The cursor is untouched."""

        async def _refresh(started: dt.datetime) -> SyncReport:
            return await self._refresh(day, started)

        return await self._exclusive("refresh", _refresh)

    async def push_entry(self, entry: JournalEntry) -> SyncResult:
        """Best-effort push of a single just-submitted entry.

        Not gated by the in-progress flag: the entry is already durable
        locally and keeps ``needs_sync`` until a push is confirmed, so a
        failure here is logged and left for the next automatic trigger.
        """
        if entry.is_draft:
            return SyncResult(
                date_key=entry.date_key,
                entry_id=entry.id,
                action=SyncAction.SKIP,
                success=True,
                error="drafts are not pushed",
            )
        try:
            user_id = require_user_id(self.identity)
        except AuthError as exc:
            logger.info("Deferring push of %s: %s", entry.date_key, exc)
            return _failure(entry.date_key, entry.id, SyncAction.PUSH, exc)
        if entry.user_id != user_id:
            exc = AuthError(f"entry belongs to {entry.user_id!r}")
            return _failure(entry.date_key, entry.id, SyncAction.PUSH, exc)
        return await self._push_one(entry)

    async def delete_remote(self, entry: JournalEntry) -> SyncResult:
        """Delete the remote copy of *entry*, leaving a tombstone on failure.

        The tombstone is written before the remote call, so a crash or
        failure leaves a pending delete that the next push retries and
        that stops pulls from resurrecting the entry.

        Raises:
            StorageError: The tombstone could not be persisted.
        """
        self.settings.add_pending_delete(entry.user_id, entry.date_key)
        result = await self._delete_one(entry.user_id, entry.date_key)
        if not result.success:
            logger.info(
                "Remote delete of %s deferred: %s", entry.date_key, result.error
            )
        return result

    async def run(self, stop: asyncio.Event) -> None:
        """Run ``sync_all`` on every reachability event until *stop* is set."""
        if self.monitor is None:
            raise RuntimeError("SyncEngine.run() needs a ConnectivityMonitor")
        queue = self.monitor.subscribe()
        try:
            while not stop.is_set():
                getter = asyncio.ensure_future(queue.get())
                stopper = asyncio.ensure_future(stop.wait())
                done, pending = await asyncio.wait(
                    {getter, stopper}, return_when=asyncio.FIRST_COMPLETED
                )
                for task in pending:
                    task.cancel()
                if getter not in done:
                    break
                # Several edges queued while a sync ran need only one run.
                while not queue.empty():
                    queue.get_nowait()
                report = await self.sync_all()
                logger.info("%s", report.summary())
        finally:
            self.monitor.unsubscribe(queue)

    # ------------------------------------------------------------------
    # Run bookkeeping
    # ------------------------------------------------------------------

    async def _exclusive(
        self,
        operation: str,
        body: Callable[[dt.datetime], Awaitable[SyncReport]],
    ) -> SyncReport:
        started = self._clock()
        if self._in_progress:
            logger.info("%s requested while a sync is running; skipped", operation)
            return SyncReport(
                operation=operation,
                started_at=started.isoformat(),
                completed_at=started.isoformat(),
                coalesced=True,
            )

        self._in_progress = True
        self._idle.clear()
        try:
            try:
                report = await body(started)
            except StorageError as exc:
                logger.error("%s aborted by local storage failure: %s", operation, exc)
                report = self._aborted(operation, started, exc)
        finally:
            self._in_progress = False
            self._idle.set()

        self._record_outcome(report)
        return report

    def _record_outcome(self, report: SyncReport) -> None:
        values: dict = {LAST_SYNC_ERROR: report.first_error()}
        if report.aborted is None:
            values[LAST_SYNC_AT] = report.completed_at
        try:
            self.settings.update(values)
        except StorageError as exc:
            logger.error("Could not record sync outcome: %s", exc)

    def _aborted(
        self,
        operation: str,
        started: dt.datetime,
        exc: Exception,
        results: list[SyncResult] | None = None,
        user_id: str | None = None,
    ) -> SyncReport:
        return SyncReport(
            operation=operation,
            user_id=user_id,
            results=results or [],
            started_at=started.isoformat(),
            completed_at=self._clock().isoformat(),
            aborted=f"{error_kind(exc)}: {exc}",
            cursor=self._cursor_str(),
        )

    def _cursor_str(self) -> str | None:
        return self._last_pull_at.isoformat() if self._last_pull_at else None

    # ------------------------------------------------------------------
    # Push path
    # ------------------------------------------------------------------

    async def _push(self, started: dt.datetime) -> SyncReport:
        try:
            user_id = require_user_id(self.identity)
        except AuthError as exc:
            logger.info("Push skipped: %s", exc)
            return self._aborted("push", started, exc)

        results = await self._flush_pending_deletes(user_id)
        aborted: str | None = None

        pending = self.store.query(
            user_id=user_id, needs_sync=True, is_completed=True
        )
        if not pending:
            logger.debug("No entries waiting to be pushed")

        for entry in pending:
            result = await self._push_one(entry)
            results.append(result)
            if result.error_kind in _BATCH_FATAL:
                aborted = f"{result.error_kind}: {result.error}"
                logger.warning(
                    "Push batch stopped at %s: %s", entry.date_key, result.error
                )
                break

        if pending:
            pushed = sum(1 for r in results if r.action == SyncAction.PUSH and r.success)
            logger.info("Pushed %d of %d pending entries", pushed, len(pending))

        return SyncReport(
            operation="push",
            user_id=user_id,
            results=results,
            started_at=started.isoformat(),
            completed_at=self._clock().isoformat(),
            aborted=aborted,
        )

    async def _push_one(self, entry: JournalEntry) -> SyncResult:
        try:
            await run_sync(self.remote.upsert, entry)
        except (AuthError, RemoteError) as exc:
            logger.warning("Push of %s failed: %s", entry.date_key, exc)
            return _failure(entry.date_key, entry.id, SyncAction.PUSH, exc)

        try:
            # The new document replaces whatever an earlier delete targeted.
            self.settings.remove_pending_delete(entry.user_id, entry.date_key)
            confirmed = self._confirm_pushed(entry)
        except StorageError as exc:
            logger.error(
                "Pushed %s but could not clear its sync flag: %s",
                entry.date_key,
                exc,
            )
            return _failure(entry.date_key, entry.id, SyncAction.PUSH, exc)

        return SyncResult(
            date_key=entry.date_key,
            entry_id=entry.id,
            action=SyncAction.PUSH,
            success=True,
            error=None if confirmed else "modified during push; left pending",
        )

    def _confirm_pushed(self, pushed: JournalEntry) -> bool:
        """Clear ``needs_sync`` if the local entry still matches *pushed*."""
        current = self.store.get(pushed.id)
        if current is None:
            return False
        if (
            current.last_modified != pushed.last_modified
            or not current.content_equals(pushed)
        ):
            logger.info(
                "%s changed while its push was in flight; keeping it pending",
                pushed.date_key,
            )
            return False
        self.store.update(current.mark_synced())
        return True

    async def _flush_pending_deletes(self, user_id: str) -> list[SyncResult]:
        results = []
        for owner, key in self.settings.pending_deletes():
            if owner != user_id:
                continue
            current = self.store.get_by_date(owner, dt.date.fromisoformat(key))
            if current is not None and current.is_completed:
                logger.info("Dropping pending delete of %s: day was rewritten", key)
                self.settings.remove_pending_delete(owner, key)
                continue
            results.append(await self._delete_one(owner, key))
        return results

    async def _delete_one(self, user_id: str, key: str) -> SyncResult:
        try:
            await run_sync(self.remote.delete, user_id, dt.date.fromisoformat(key))
        except (AuthError, RemoteError) as exc:
            logger.warning("Remote delete of %s failed: %s", key, exc)
            return _failure(key, None, SyncAction.DELETE_REMOTE, exc)
        self.settings.remove_pending_delete(user_id, key)
        return SyncResult(
            date_key=key, action=SyncAction.DELETE_REMOTE, success=True
        )

    # ------------------------------------------------------------------
    # Pull path
    # ------------------------------------------------------------------

    async def _pull(self, started: dt.datetime) -> SyncReport:
        try:
            user_id = require_user_id(self.identity)
        except AuthError as exc:
            logger.info("Pull skipped: %s", exc)
            return self._aborted("pull", started, exc)

        since = self._last_pull_at
        try:
            remote_entries = await run_sync(
                self.remote.fetch_completed_since, user_id, since
            )
        except (AuthError, RemoteError) as exc:
            logger.warning("Pull failed, cursor left at %s: %s", since, exc)
            return self._aborted("pull", started, exc, user_id=user_id)

        tombstoned = {
            key for owner, key in self.settings.pending_deletes() if owner == user_id
        }
        results = [
            self._merge_safely(user_id, remote, tombstoned)
            for remote in remote_entries
        ]

        aborted: str | None = None
        failed = [r for r in results if not r.success]
        if failed:
            # Leave the cursor where it is so the failed days are fetched
            # again; merges are idempotent.
            logger.error(
                "%d pulled entries could not be merged; cursor left at %s",
                len(failed),
                since,
            )
        else:
            try:
                self.settings.set_timestamp(LAST_PULL_AT, started)
                self._last_pull_at = started
            except StorageError as exc:
                logger.error("Could not persist pull cursor: %s", exc)
                aborted = f"storage: {exc}"

        logger.info(
            "Pulled %d remote entries since %s", len(remote_entries), since
        )
        return SyncReport(
            operation="pull",
            user_id=user_id,
            results=results,
            started_at=started.isoformat(),
            completed_at=self._clock().isoformat(),
            aborted=aborted,
            cursor=self._cursor_str(),
        )

    def _merge_safely(
        self, user_id: str, remote: JournalEntry, tombstoned: set[str]
    ) -> SyncResult:
        try:
            return self._merge_remote(user_id, remote, tombstoned)
        except JournalError as exc:
            logger.error("Merge of %s failed: %s", remote.date_key, exc)
            return _failure(remote.date_key, remote.id, SyncAction.SKIP, exc)
        except Exception as exc:
            logger.exception("Unexpected error merging %s", remote.date_key)
            return _failure(remote.date_key, remote.id, SyncAction.SKIP, exc)

    def _merge_remote(
        self, user_id: str, remote: JournalEntry, tombstoned: set[str]
    ) -> SyncResult:
        if remote.date_key in tombstoned:
            return SyncResult(
                date_key=remote.date_key,
                entry_id=remote.id,
                action=SyncAction.SKIP,
                success=True,
                error="pending remote delete",
            )

        local = self.store.get_by_date(user_id, remote.date)
        decision = resolve_pull(local, remote)

        match decision:
            case PullDecision.INSERT:
                self.store.insert(
                    remote.model_copy(
                        update={"user_id": user_id, "needs_sync": False}
                    )
                )
                logger.debug("Pulled new entry %s", remote.date_key)
                return SyncResult(
                    date_key=remote.date_key,
                    entry_id=remote.id,
                    action=SyncAction.CREATE_LOCAL,
                    success=True,
                )
            case PullDecision.OVERWRITE:
                self.store.update(local.with_remote(remote))
                logger.debug(
                    "Remote %s superseded local (%s)",
                    remote.date_key,
                    "draft" if local.is_draft else "older",
                )
                return SyncResult(
                    date_key=remote.date_key,
                    entry_id=local.id,
                    action=SyncAction.UPDATE_LOCAL,
                    success=True,
                )
            case _:
                return SyncResult(
                    date_key=remote.date_key,
                    entry_id=local.id if local else remote.id,
                    action=SyncAction.SKIP,
                    success=True,
                    error=decision.value,
                )

    # ------------------------------------------------------------------
    # Combined runs
    # ------------------------------------------------------------------

    async def _sync(self, started: dt.datetime) -> SyncReport:
        push = await self._push(started)
        if push.aborted and push.aborted.startswith("auth"):
            return push.model_copy(update={"operation": "sync"})
        pull = await self._pull(self._clock())
        return SyncReport(
            operation="sync",
            user_id=pull.user_id or push.user_id,
            results=[*push.results, *pull.results],
            started_at=started.isoformat(),
            completed_at=self._clock().isoformat(),
            aborted=push.aborted or pull.aborted,
            cursor=pull.cursor,
        )

    async def _refresh(self, day: dt.date, started: dt.datetime) -> SyncReport:
        try:
            user_id = require_user_id(self.identity)
            remote = await run_sync(self.remote.fetch, user_id, day)
        except (AuthError, RemoteError) as exc:
            logger.warning("Refresh of %s failed: %s", date_key(day), exc)
            return self._aborted("refresh", started, exc)

        if remote is None:
            results = [
                SyncResult(
                    date_key=date_key(day),
                    action=SyncAction.SKIP,
                    success=True,
                    error="no remote entry",
                )
            ]
        else:
            tombstoned = {
                key
                for owner, key in self.settings.pending_deletes()
                if owner == user_id
            }
            results = [self._merge_safely(user_id, remote, tombstoned)]

        return SyncReport(
            operation="refresh",
            user_id=user_id,
            results=results,
            started_at=started.isoformat(),
            completed_at=self._clock().isoformat(),
            cursor=self._cursor_str(),
        )


def _failure(
    key: str, entry_id: str | None, action: SyncAction, exc: Exception
) -> SyncResult:
    return SyncResult(
        date_key=key,
        entry_id=entry_id,
        action=action,
        success=False,
        error=str(exc),
        error_kind=error_kind(exc),
    )

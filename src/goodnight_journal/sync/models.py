"""Pydantic models describing sync outcomes.

- ``SyncAction``: what happened (or would have) to one entry.
- ``SyncResult``: outcome for one entry in a push or pull batch.
- ``SyncReport``: aggregate outcome of one engine run.
- ``SyncStatus``: point-in-time view of the engine for display.

All models are frozen.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class SyncAction(str, Enum):
    """Per-entry sync operations."""

    SKIP = "skip"
    PUSH = "push"
    CREATE_LOCAL = "create_local"
    UPDATE_LOCAL = "update_local"
    DELETE_REMOTE = "delete_remote"


class SyncResult(BaseModel):
    """Outcome for one entry.

    Attributes:
        date_key: ``YYYY-MM-DD`` of the entry's day.
        entry_id: Local or remote entry id, when known.
        action: Operation attempted.
        success: Whether it completed.
        error: Failure reason, or a note explaining a skip.
        error_kind: Failure category (``auth``, ``network``, ``remote``,
            ``conflict``, ``storage``, ``unexpected``).
    """

    date_key: str
    entry_id: str | None = None
    action: SyncAction
    success: bool
    error: str | None = None
    error_kind: str | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for one push, pull, sync or refresh run.

    Attributes:
        operation: ``push``, ``pull``, ``sync`` or ``refresh``.
        user_id: Identity the run acted for, if any.
        results: Individual entry results, in processing order.
        started_at: ISO 8601 start time.
        completed_at: ISO 8601 completion time.
        coalesced: The run was skipped because another was in flight.
        aborted: Why the run stopped early, if it did.
        cursor: Pull cursor after the run (ISO 8601), for pulls.
    """

    operation: str
    user_id: str | None = None
    results: list[SyncResult] = []
    started_at: str
    completed_at: str | None = None
    coalesced: bool = False
    aborted: str | None = None
    cursor: str | None = None

    model_config = {"frozen": True}

    @property
    def pushed(self) -> list[SyncResult]:
        return [
            r
            for r in self.results
            if r.action == SyncAction.PUSH and r.success
        ]

    @property
    def created_local(self) -> list[SyncResult]:
        return [
            r for r in self.results if r.action == SyncAction.CREATE_LOCAL
        ]

    @property
    def updated_local(self) -> list[SyncResult]:
        return [
            r for r in self.results if r.action == SyncAction.UPDATE_LOCAL
        ]

    @property
    def deleted_remote(self) -> list[SyncResult]:
        return [
            r
            for r in self.results
            if r.action == SyncAction.DELETE_REMOTE and r.success
        ]

    @property
    def skipped(self) -> list[SyncResult]:
        return [r for r in self.results if r.action == SyncAction.SKIP]

    @property
    def errors(self) -> list[SyncResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    @property
    def ok(self) -> bool:
        """True when the run was not aborted and no entry failed."""
        return self.aborted is None and not self.errors

    def first_error(self) -> str | None:
        """The abort reason, else the first entry error, else ``None``."""
        if self.aborted:
            return self.aborted
        for r in self.errors:
            return f"{r.date_key}: {r.error}"
        return None

    def summary(self) -> str:
        """Format a short multi-line summary with counts by action."""
        header = f"Sync report ({self.operation})"
        if self.coalesced:
            return header + ": coalesced into a running sync"
        lines = [
            header + (f" aborted: {self.aborted}" if self.aborted else ""),
            f"  Pushed:         {len(self.pushed)}",
            f"  Deleted remote: {len(self.deleted_remote)}",
            f"  Created local:  {len(self.created_local)}",
            f"  Updated local:  {len(self.updated_local)}",
            f"  Skipped:        {len(self.skipped)}",
            f"  Errors:         {len(self.errors)}",
            f"  Total:          {len(self.results)}",
        ]
        return "\n".join(lines)


class SyncStatus(BaseModel):
    """Snapshot of engine state for status displays.

    Attributes:
        is_syncing: A run is in flight.
        user_id: Currently authenticated user, if any.
        last_sync_at: ISO 8601 time of the last completed run.
        last_pull_at: Pull cursor (ISO 8601).
        last_error: First error of the last run, if any.
        pending_count: Completed entries still waiting to be pushed.
        pending_deletes: Remote deletes still waiting to be retried.
    """

    is_syncing: bool
    user_id: str | None = None
    last_sync_at: str | None = None
    last_pull_at: str | None = None
    last_error: str | None = None
    pending_count: int = 0
    pending_deletes: int = 0

    model_config = {"frozen": True}

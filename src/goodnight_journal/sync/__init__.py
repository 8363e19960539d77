"""Local-first sync between the entry store and the remote repository.

Architecture
------------
Local edits always land in the entry store first.  The engine moves
completed entries between devices in two independent directions:

- **push**: completed entries flagged ``needs_sync`` are merge-written
  to the remote, oldest day first; each flag is cleared as soon as its
  own push is confirmed.
- **pull**: remote completed entries modified since the cursor are
  merged with a whole-entry policy (remote beats local drafts,
  last-writer-wins between completed entries).

Modules:

- ``engine``    -- ``SyncEngine``: push/pull orchestration, cursor,
  re-entrancy guard, connectivity-driven run loop.
- ``resolver``  -- ``resolve_pull``: the pull conflict policy.
- ``models``    -- ``SyncAction``, ``SyncResult``, ``SyncReport``,
  ``SyncStatus``.
- ``reporter``  -- human-readable and JSON report formatting.

Usage example
-------------
::

    from goodnight_journal.sync import SyncEngine, format_sync_report

    engine = SyncEngine(
        store=entry_store,
        remote=firestore_repository,
        settings=settings_store,
        identity=identity,
    )
    report = await engine.sync_all()
    print(format_sync_report(report))
"""

from .engine import SyncEngine
from .models import SyncAction, SyncReport, SyncResult, SyncStatus
from .reporter import format_status, format_sync_report, report_to_json
from .resolver import PullDecision, resolve_pull

__all__ = [
    "PullDecision",
    "SyncAction",
    "SyncEngine",
    "SyncReport",
    "SyncResult",
    "SyncStatus",
    "format_status",
    "format_sync_report",
    "report_to_json",
    "resolve_pull",
]

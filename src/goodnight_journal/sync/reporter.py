"""Sync report formatting.

- ``format_sync_report``: human-readable post-run summary.
- ``format_status``: one-screen view of a ``SyncStatus``.
- ``report_to_json``: structured dict for ``--json`` CLI output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import SyncReport, SyncStatus

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a sync report as human-readable text.

    Sections are only included when they contain at least one result.
    Skipped days are summarised by count only.

    Args:
        report: The completed sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"Sync report ({report.operation})"
    if report.user_id:
        header += f" for {report.user_id}"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    if report.coalesced:
        lines.append("Another sync was already running; nothing was done.")
        return "\n".join(lines).rstrip()

    if report.aborted:
        lines.append(f"Aborted: {report.aborted}")
        lines.append("")

    lines.append(
        f"{len(report.results)} entries: "
        f"{len(report.pushed)} pushed, "
        f"{len(report.created_local) + len(report.updated_local)} pulled, "
        f"{len(report.deleted_remote)} deleted remotely, "
        f"{len(report.errors)} errors"
    )
    lines.append("")

    if report.pushed:
        lines.append("Pushed to cloud:")
        for r in report.pushed:
            note = f" ({r.error})" if r.error else ""
            lines.append(f"  {r.date_key}{note}")
        lines.append("")

    if report.deleted_remote:
        lines.append("Deleted from cloud:")
        for r in report.deleted_remote:
            lines.append(f"  {r.date_key}")
        lines.append("")

    if report.created_local:
        lines.append("Pulled (new):")
        for r in report.created_local:
            lines.append(f"  {r.date_key}")
        lines.append("")

    if report.updated_local:
        lines.append("Pulled (updated):")
        for r in report.updated_local:
            lines.append(f"  {r.date_key}")
        lines.append("")

    if report.errors:
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {r.date_key} [{r.error_kind}]: {r.error}")
        lines.append("")

    skipped = [r for r in report.skipped if r.success]
    if skipped:
        lines.append(f"Skipped: {len(skipped)} entries")
        lines.append("")

    if report.cursor:
        lines.append(f"Cursor: {report.cursor}")

    return "\n".join(lines).rstrip()


def format_status(status: SyncStatus) -> str:
    """Format engine status for the ``status`` command."""
    lines = [
        f"User:            {status.user_id or '(signed out)'}",
        f"Syncing:         {'yes' if status.is_syncing else 'no'}",
        f"Last sync:       {status.last_sync_at or 'never'}",
        f"Last pull:       {status.last_pull_at or 'never'}",
        f"Pending pushes:  {status.pending_count}",
        f"Pending deletes: {status.pending_deletes}",
    ]
    if status.last_error:
        lines.append(f"Last error:      {status.last_error}")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation.

    Args:
        report: The sync report.

    Returns:
        Dict with run info, counts, and per-result details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "date": r.date_key,
            "action": r.action.value,
            "success": r.success,
        }
        if r.entry_id:
            entry["id"] = r.entry_id
        if r.error:
            entry["error"] = r.error
        if r.error_kind:
            entry["error_kind"] = r.error_kind
        results_list.append(entry)

    return {
        "operation": report.operation,
        "user_id": report.user_id,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "coalesced": report.coalesced,
        "aborted": report.aborted,
        "cursor": report.cursor,
        "counts": {
            "total": len(report.results),
            "pushed": len(report.pushed),
            "created_local": len(report.created_local),
            "updated_local": len(report.updated_local),
            "deleted_remote": len(report.deleted_remote),
            "errors": len(report.errors),
            "skipped": len(report.skipped),
        },
        "results": results_list,
    }

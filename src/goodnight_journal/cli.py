"""``goodnight-journal`` command line interface.

Headless access to the local store and the sync engine, for debugging and
for running the background sync loop outside the app.

Exit codes: 0 success, 1 the run reported errors, 2 configuration error.
"""

import argparse
import asyncio
import contextlib
import datetime as dt
import json
import logging
import signal
import sys

from . import __version__
from .app import JournalApp, journal_session
from .config import load_config, validate_remote_config
from .config_loader import ensure_config
from .connectivity import HttpReachabilityProbe
from .errors import JournalError
from .layout import compose_journal_text
from .logger import setup_logging
from .sync.models import SyncReport
from .sync.reporter import format_status, format_sync_report, report_to_json

logger = logging.getLogger(__name__)

_REMOTE_COMMANDS = {"push", "pull", "sync", "refresh", "watch"}
# Commands that pull on their own.
_PULLING_COMMANDS = {"pull", "sync"}


def _parse_day(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"invalid date '{value}' (expected YYYY-MM-DD)"
        ) from None


def _parse_month(value: str) -> tuple[int, int]:
    try:
        parsed = dt.datetime.strptime(value, "%Y-%m")
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"invalid month '{value}' (expected YYYY-MM)"
        ) from None
    return parsed.year, parsed.month


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="goodnight-journal",
        description="Goodnight Journal - local-first journal store and cloud sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create a starter config file
  goodnight-journal init-config

  # Show local sync state
  goodnight-journal status

  # Push pending entries, then pull remote changes
  goodnight-journal sync --json

  # Keep syncing whenever the network comes back
  goodnight-journal watch --log-file /var/log/goodnight-journal.log
        """,
    )
    parser.add_argument("--project-id", help="Firestore project id")
    parser.add_argument("--user-id", help="Signed-in user id")
    parser.add_argument(
        "--id-token",
        help="Bearer token for Firestore (visible in process list -- "
        "prefer GOODNIGHT_JOURNAL_ID_TOKEN)",
    )
    parser.add_argument("--data-dir", help="Directory for local data")
    parser.add_argument("--base-url", help="Firestore REST root (emulator)")
    parser.add_argument(
        "--insecure",
        action="store_true",
        default=None,
        help="Skip SSL certificate verification (development only)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Print machine-readable JSON instead of text",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"goodnight-journal version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Show sync state and pending work")
    sub.add_parser("push", help="Push completed entries that need sync")
    sub.add_parser("pull", help="Pull remote entries changed since the cursor")
    sub.add_parser("sync", help="Push, then pull")

    refresh = sub.add_parser("refresh", help="Re-fetch one day from the cloud")
    refresh.add_argument("day", type=_parse_day, help="Day as YYYY-MM-DD")

    listing = sub.add_parser("list", help="List entries for a month")
    listing.add_argument(
        "--month", type=_parse_month, help="Month as YYYY-MM (default: current)"
    )

    show = sub.add_parser("show", help="Print one day's entry")
    show.add_argument(
        "day", nargs="?", type=_parse_day, help="Day as YYYY-MM-DD (default: today)"
    )

    watch = sub.add_parser("watch", help="Sync whenever the network comes back")
    watch.add_argument(
        "--interval",
        type=float,
        help="Seconds between reachability probes (default from config)",
    )

    sub.add_parser("init-config", help="Write a starter config file")
    return parser


def _overrides(args: argparse.Namespace) -> dict:
    return {
        "project_id": args.project_id,
        "user_id": args.user_id,
        "id_token": args.id_token,
        "data_dir": args.data_dir,
        "base_url": args.base_url,
        "insecure": args.insecure,
    }


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _print_report(report: SyncReport, as_json: bool) -> int:
    if as_json:
        print(json.dumps(report_to_json(report), indent=2))
    else:
        print(format_sync_report(report))
    return 0 if report.ok or report.coalesced else 1


async def _watch(app: JournalApp, interval: float) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signum, stop.set)

    probe = HttpReachabilityProbe(app.config.sync.probe_url)
    logger.info(
        "Watching %s every %.0fs", app.config.sync.probe_url, interval
    )
    await asyncio.gather(
        app.monitor.watch(probe, interval, stop),
        app.engine.run(stop),
    )


async def run_command(args: argparse.Namespace, app: JournalApp) -> int:
    """Execute a parsed command against an open journal session."""
    command = args.command
    engine = app.engine

    if command == "status":
        status = engine.status()
        if args.as_json:
            print(json.dumps(status.model_dump(), indent=2))
        else:
            print(format_status(status))
        return 0

    if command == "push":
        return _print_report(await engine.push_pending_entries(), args.as_json)
    if command == "pull":
        return _print_report(await engine.pull_completed_entries(), args.as_json)
    if command == "sync":
        return _print_report(await engine.sync_all(), args.as_json)
    if command == "refresh":
        return _print_report(await app.service.refresh(args.day), args.as_json)

    if command == "list":
        today = app.service.today()
        year, month = args.month or (today.year, today.month)
        entries = app.service.entries_for_month(year, month)
        if args.as_json:
            print(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
            return 0
        for entry in entries:
            state = "completed" if entry.is_completed else "draft"
            pending = " (pending sync)" if entry.needs_sync else ""
            print(f"{entry.date_key}  {state}{pending}")
        if not entries:
            print(f"No entries for {year:04d}-{month:02d}")
        return 0

    if command == "show":
        entry = app.service.open_day(args.day)
        if args.as_json:
            print(json.dumps(entry.model_dump(mode="json"), indent=2))
            return 0
        poem_lines = entry.poem_content.splitlines() or entry.letters
        print(compose_journal_text(poem_lines, entry.journal_content))
        return 0

    if command == "watch":
        await _watch(app, args.interval or app.config.sync.probe_interval)
        return 0

    raise ValueError(f"Unknown command: {command}")


async def _main(args: argparse.Namespace) -> int:
    try:
        config = load_config(_overrides(args))
        if args.command in _REMOTE_COMMANDS:
            validate_remote_config(config)
    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(
        mode="watch" if args.command == "watch" else "cli",
        debug=args.debug,
        log_file=args.log_file or config.logging.file,
        level=config.logging.level,
    )

    try:
        async with journal_session(
            config, pull_on_start=args.command not in _PULLING_COMMANDS
        ) as app:
            return await run_command(args, app)
    except JournalError as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "init-config":
        path = ensure_config()
        print(f"Config file: {path}")
        return 0

    return asyncio.run(_main(args))


def run() -> None:
    """Console-script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()

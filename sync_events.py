"""Command line entry point for the events sync.

Usage:
  python sync_events.py                      # preview all sources
  python sync_events.py --source=crown       # preview one source
  python sync_events.py --db                 # sync to DynamoDB
  python sync_events.py --db --dry-run       # show what a sync would change
  python sync_events.py --db --cleanup       # sync, then archive/cancel
  python sync_events.py --db --cleanup-only  # lifecycle cleanup only
  python sync_events.py --json               # machine-readable output
"""
import argparse
import json
import logging
import sys
from itertools import groupby
from typing import List, Optional, TextIO

from lambda_function import create_store, run_sync, setup_logging, summarize
from processor.date_parsing import LOCAL_TZ
from processor.models import SECTIONS, CanonicalEvent, SyncReport
from settings import Settings
from sources.registry import ALL, UnknownSourceError, source_names

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_UNKNOWN_SOURCE = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Aggregate Fayetteville events and sync them')
    parser.add_argument('--db', action='store_true', help='Write to DynamoDB instead of previewing')
    parser.add_argument('--dry-run', action='store_true', help='With --db, compute changes without writing')
    parser.add_argument('--cleanup', action='store_true', help='Archive past and cancel stale events after syncing')
    parser.add_argument('--cleanup-only', action='store_true', help='Only run lifecycle cleanup')
    parser.add_argument(
        '--source',
        default=ALL,
        help=f"Restrict to one source ({', '.join([ALL] + source_names())})"
    )
    parser.add_argument('--json', action='store_true', help='Print JSON to stdout')
    parser.add_argument('--enhanced', action='store_true', help='Fetch extra metadata (slower)')
    parser.add_argument('--log-level', default=None, help='Logging level (default: LOG_LEVEL or INFO)')
    return parser.parse_args(argv)


def _section_order(event: CanonicalEvent):
    section = SECTIONS.index(event.section) if event.section in SECTIONS else len(SECTIONS)
    return (section, event.source, event.start)


def print_preview(events: List[CanonicalEvent], out: TextIO) -> None:
    """Human-readable listing grouped by section and source."""
    ordered = sorted(events, key=_section_order)
    for section, section_events in groupby(ordered, key=lambda event: event.section):
        section_events = list(section_events)
        print(f"\n== {section} ({len(section_events)}) ==", file=out)
        for source, source_events in groupby(section_events, key=lambda event: event.source):
            source_events = list(source_events)
            print(f"-- {source} ({len(source_events)})", file=out)
            for event in source_events:
                when = event.start.astimezone(LOCAL_TZ).strftime('%a %b %d %I:%M %p')
                where = f" @ {event.venue.name}" if event.venue else ''
                print(f"  {when}  {event.title}{where}", file=out)


def print_summary(report: SyncReport, out: TextIO) -> None:
    if report.aggregation is not None:
        aggregation = report.aggregation
        print(
            f"\nFetched {aggregation.total_fetched} events, "
            f"{len(aggregation.events)} unique upcoming",
            file=out
        )
        if aggregation.failed_sources:
            print(f"Failed sources: {', '.join(aggregation.failed_sources)}", file=out)
    if report.sync is not None:
        stats = report.sync
        print(
            f"Sync: {stats.inserted} new, {stats.updated} updated, "
            f"{stats.unchanged} unchanged, {stats.errors} errors",
            file=out
        )
    if report.cleanup is not None:
        result = report.cleanup
        print(
            f"Cleanup: {result.archived} archived, {result.cancelled} cancelled, "
            f"{result.errors} errors",
            file=out
        )


def main(argv: Optional[List[str]] = None, out: Optional[TextIO] = None) -> int:
    out = out or sys.stdout
    args = parse_args(argv)
    settings = Settings.from_env()
    setup_logging(args.log_level or settings.log_level)

    if (args.dry_run or args.cleanup or args.cleanup_only) and not args.db:
        logger.warning("--dry-run and --cleanup options only apply with --db")

    try:
        store = create_store(settings) if args.db else None
        report = run_sync(
            settings,
            store=store,
            source=args.source,
            dry_run=args.dry_run,
            cleanup=args.cleanup,
            cleanup_only=args.cleanup_only,
            enhanced=args.enhanced or None,
        )
    except UnknownSourceError as e:
        logger.error(str(e))
        print(str(e), file=sys.stderr)
        return EXIT_UNKNOWN_SOURCE
    except Exception as e:
        logger.error(f"Sync failed: {e}", extra={'error_type': type(e).__name__}, exc_info=True)
        return EXIT_FAILURE

    if args.json:
        payload = summarize(report)
        if report.aggregation is not None:
            payload['events'] = [event.to_dict() for event in report.aggregation.events]
        print(json.dumps(payload, indent=2, default=str), file=out)
    else:
        if report.aggregation is not None and (not args.db or args.dry_run):
            print_preview(report.aggregation.events, out)
        print_summary(report, out)

    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())

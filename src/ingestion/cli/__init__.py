"""
Command-line interface for notes ingestion.

Available commands:
- partition: Split a notes document into standalone parts
- ingest: Partition, load and clean up one document
- reconcile: Compare live boundary IDs with a repository backup
- schedule: Run ingestion periodically
- report: Show a saved run report
"""

import sys

from utils.logging import configure_from_env, shutdown_logging
from utils.tracing import initialize_tracing, shutdown_tracing

from .commands import (
    build_config,
    cmd_ingest,
    cmd_partition,
    cmd_reconcile,
    cmd_report,
    cmd_schedule,
)
from .parser import create_parser

COMMANDS = {
    'partition': cmd_partition,
    'ingest': cmd_ingest,
    'reconcile': cmd_reconcile,
    'schedule': cmd_schedule,
    'report': cmd_report,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the osm-notes-ingest CLI"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command not in COMMANDS:
        parser.print_help()
        return 1

    if args.command == 'ingest' and bool(args.input) == bool(args.url):
        parser.error("Exactly one of INPUT or --url is required")

    configure_from_env(args.log_level)
    initialize_tracing()

    try:
        return COMMANDS[args.command](args)
    finally:
        shutdown_tracing()
        shutdown_logging()


__all__ = [
    'main',
    'build_config',
    'cmd_partition',
    'cmd_ingest',
    'cmd_reconcile',
    'cmd_schedule',
    'cmd_report',
    'create_parser',
]


if __name__ == '__main__':
    sys.exit(main())

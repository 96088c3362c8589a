"""
Command-line argument parser configuration.
"""

import argparse


def _add_pipeline_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--output-dir',
        required=True,
        help='Directory that receives the part files'
    )
    parser.add_argument(
        '--parts',
        type=int,
        help='Target number of parts (default: MAX_THREADS)'
    )
    parser.add_argument(
        '--workers',
        type=int,
        help='Worker budget before resource adjustment (default: MAX_THREADS)'
    )
    parser.add_argument(
        '--load-statement',
        help='SQL that loads one part file, with one %%s placeholder for its path '
             '(omit for a dry run)'
    )
    parser.add_argument(
        '--validate',
        action='store_true',
        help='Check every part is well-formed XML before loading'
    )
    parser.add_argument(
        '--deadline',
        type=float,
        help='Overall time budget for the load in seconds'
    )
    parser.add_argument(
        '--max-failed-units',
        type=int,
        help='Units allowed to fail before the run is marked FAIL (default: 0)'
    )


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog='osm-notes-ingest',
        description="Partition, load and reconcile OpenStreetMap notes data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Split a planet dump into 8 standalone parts
  osm-notes-ingest partition planet-notes-latest.osn --output-dir /tmp/parts --parts 8

  # Dry run: partition and validate the parts without loading them
  osm-notes-ingest ingest planet-notes-latest.osn --output-dir /tmp/parts --validate

  # Load the parts through a database procedure, 6 workers
  osm-notes-ingest ingest planet-notes-latest.osn --output-dir /tmp/parts \\
      --workers 6 --load-statement "CALL insert_notes_from_file(%s)"

  # Compare live country IDs with the repository backup
  osm-notes-ingest reconcile --query-file countries.op --backup data/countries.geojson.gz

  # Download and ingest the API notes every 15 minutes
  osm-notes-ingest schedule --cron "*/15 * * * *" --url "$NOTES_API_URL" --output-dir /tmp/parts

  # Show a saved run report
  osm-notes-ingest report --input reports/ingest_20260101_030000.json
        """
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: LOG_LEVEL or INFO)'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # ========== Partition command ==========
    partition_parser = subparsers.add_parser('partition', help='Split a notes document into parts')
    partition_parser.add_argument('input', help='Notes document (planet dump or API answer)')
    partition_parser.add_argument(
        '--output-dir',
        required=True,
        help='Directory that receives the part files'
    )
    partition_parser.add_argument(
        '--parts',
        type=int,
        help='Target number of parts (default: MAX_THREADS)'
    )
    partition_parser.add_argument(
        '--min-records',
        type=int,
        help='Minimum records per part (default: MIN_NOTES_FOR_PARALLEL or 10)'
    )
    partition_parser.add_argument(
        '--strategy',
        choices=['auto', 'linear', 'binary'],
        default='auto',
        help='Boundary search strategy (default: auto, by document size)'
    )

    # ========== Ingest command ==========
    ingest_parser = subparsers.add_parser('ingest', help='Partition and load a notes document')
    ingest_parser.add_argument('input', nargs='?', help='Notes document to ingest')
    ingest_parser.add_argument('--url', help='Download the document from this URL first')
    _add_pipeline_options(ingest_parser)
    ingest_parser.add_argument(
        '--expected-ids',
        help='File with one expected note id per line; missing ids are reported as a data gap'
    )
    ingest_parser.add_argument(
        '--report',
        help='Write the run report to this JSON file'
    )
    ingest_parser.add_argument(
        '--format',
        choices=['console', 'json'],
        default='console',
        help='Report output format on stdout (default: console)'
    )

    # ========== Reconcile command ==========
    reconcile_parser = subparsers.add_parser(
        'reconcile',
        help='Compare live boundary IDs with a backup'
    )
    live = reconcile_parser.add_mutually_exclusive_group(required=True)
    live.add_argument('--query-file', help='Overpass query returning the live IDs')
    live.add_argument('--live-ids', help='File with one live ID per line (no Overpass call)')
    reconcile_parser.add_argument(
        '--backup',
        required=True,
        help='Backup GeoJSON (plain or .gz) or ID list file'
    )
    reconcile_parser.add_argument(
        '--id-property',
        default='country_id',
        help='Feature property holding the ID in the backup (default: country_id)'
    )
    reconcile_parser.add_argument(
        '--gap-type',
        default='countries',
        help='Label for recorded data gaps (default: countries)'
    )
    reconcile_parser.add_argument(
        '--endpoints',
        help='Comma-separated Overpass endpoints (default: OVERPASS_ENDPOINTS)'
    )
    reconcile_parser.add_argument(
        '--record-gaps',
        action='store_true',
        help='Insert mismatches into the data_gaps table'
    )
    reconcile_parser.add_argument(
        '--fail-on-gap',
        action='store_true',
        help='Exit with status 1 when the IDs do not match'
    )
    reconcile_parser.add_argument(
        '--output',
        help='Write the result to this JSON file'
    )

    # ========== Schedule command ==========
    schedule_parser = subparsers.add_parser('schedule', help='Run ingestion periodically')
    schedule_source = schedule_parser.add_mutually_exclusive_group(required=True)
    schedule_source.add_argument('--input', help='Notes document to ingest on every run')
    schedule_source.add_argument('--url', help='Download the document from this URL on every run')
    _add_pipeline_options(schedule_parser)
    schedule_parser.add_argument(
        '--cron',
        help='Cron expression (e.g., "*/15 * * * *" for every 15 minutes)'
    )
    schedule_parser.add_argument(
        '--interval',
        type=int,
        default=900,
        help='Interval in seconds (default: 900 = 15 minutes)'
    )
    schedule_parser.add_argument(
        '--report-dir',
        default='./ingestion_reports',
        help='Directory to save run reports'
    )
    schedule_parser.add_argument(
        '--metrics-port',
        type=int,
        help='Expose Prometheus metrics on this port'
    )

    # ========== Report command ==========
    report_parser = subparsers.add_parser('report', help='Show a saved run report')
    report_parser.add_argument(
        '--input',
        required=True,
        help='Input JSON report file'
    )
    report_parser.add_argument(
        '--format',
        choices=['console', 'json'],
        default='console',
        help='Output format (default: console)'
    )
    report_parser.add_argument(
        '--output',
        help='Output file path (required for json format)'
    )

    return parser

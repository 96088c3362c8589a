"""
CLI command implementations.

Every command returns the process exit status: 0 on success, 1 when the run
failed or its input was unusable.
"""

import argparse
import dataclasses
import json
import logging
from pathlib import Path

import requests

from ingestion.config import IngestionConfig
from ingestion.download import download_file
from ingestion.errors import IngestionError
from ingestion.overpass import Endpoint, RetryingClient
from ingestion.partition import Document, Partitioner, PartitionStrategy, PartitionWriter
from ingestion.pipeline import NotesPipeline, RunStatus
from ingestion.report import export_report_json, format_report_console, generate_run_report
from ingestion.scheduler import IngestionScheduler, ingest_job_wrapper
from ingestion.store import TargetStore
from reconciliation import BoundarySync, DataGapRecorder, read_backup_ids, read_id_list, reconcile
from utils.metrics import initialize_metrics

logger = logging.getLogger(__name__)


def build_config(args: argparse.Namespace) -> IngestionConfig:
    """Environment configuration with command-line overrides applied."""
    config = IngestionConfig.from_env()

    partition_overrides = {}
    if getattr(args, "parts", None) is not None:
        partition_overrides["target_part_count"] = args.parts
    if getattr(args, "min_records", None) is not None:
        partition_overrides["min_records_per_part"] = args.min_records

    pool_overrides = {}
    if getattr(args, "workers", None) is not None:
        pool_overrides["max_workers"] = args.workers
    if getattr(args, "deadline", None) is not None:
        pool_overrides["deadline_seconds"] = args.deadline

    overrides = {}
    if partition_overrides:
        overrides["partition"] = dataclasses.replace(config.partition, **partition_overrides)
    if pool_overrides:
        overrides["pool"] = dataclasses.replace(config.pool, **pool_overrides)
    if getattr(args, "max_failed_units", None) is not None:
        overrides["max_failed_units"] = args.max_failed_units

    return dataclasses.replace(config, **overrides) if overrides else config


def cmd_partition(args: argparse.Namespace) -> int:
    """
    Split a document into part files and print one line per part

    Args:
        args: Parsed command-line arguments
    """
    config = build_config(args)
    settings = config.partition
    strategy = None if args.strategy == "auto" else PartitionStrategy(args.strategy)

    document = Document(args.input, settings.record_tag)
    try:
        partitions = Partitioner(settings).partition(
            document,
            settings.target_part_count,
            settings.min_records_per_part,
            worker_hint=config.pool.max_workers,
            strategy=strategy,
        )
    except (IngestionError, OSError) as e:
        logger.error(f"✗ Cannot partition {args.input}: {e}")
        return 1

    if not partitions:
        logger.info(f"{args.input} holds no records, nothing to do")
        return 0

    PartitionWriter(args.output_dir).write(document, partitions)
    for partition in partitions:
        print(f"{partition.path}\t{partition.record_count}")

    logger.info(f"✓ {sum(p.record_count for p in partitions)} record(s) in {len(partitions)} part(s)")
    return 0


def cmd_ingest(args: argparse.Namespace) -> int:
    """
    Partition, load and clean up one document, then print the run report

    Args:
        args: Parsed command-line arguments
    """
    config = build_config(args)

    store = TargetStore.from_settings(config.database) if args.load_statement else None
    try:
        input_path = args.input
        if args.url:
            input_path = download_file(args.url, Path(args.output_dir) / "notes_download.xml")

        expected_ids = read_id_list(args.expected_ids) if args.expected_ids else None

        pipeline = NotesPipeline(
            config,
            store=store,
            load_statement=args.load_statement,
            validate_parts=args.validate,
        )
        summary = pipeline.process_document(input_path, args.output_dir, expected_ids=expected_ids)
    except (IngestionError, requests.RequestException, OSError) as e:
        logger.error(f"✗ Ingestion failed: {e}")
        return 1
    finally:
        if store is not None:
            store.close()

    report = generate_run_report([summary])
    if args.report:
        export_report_json(report, args.report)
        logger.info(f"Report saved to {args.report}")

    if args.format == "json":
        print(json.dumps(report, indent=2, default=str))
    else:
        print(format_report_console(report))

    return 1 if summary.status is RunStatus.FAIL else 0


def cmd_reconcile(args: argparse.Namespace) -> int:
    """
    Compare live IDs with a backup and print the result as JSON

    Args:
        args: Parsed command-line arguments
    """
    config = build_config(args)
    store = TargetStore.from_settings(config.database) if args.record_gaps else None
    recorder = DataGapRecorder(store)

    try:
        if args.live_ids:
            backup_ids = _read_any_backup(args.backup, args.id_property)
            result = reconcile(read_id_list(args.live_ids), backup_ids)
            recorder.record(args.gap_type, result, details={"backup_path": args.backup})
            output = {"source": "file", "reconciliation": result.to_dict()}
            matched = result.matched
        else:
            overpass = config.overpass
            if args.endpoints:
                overpass = dataclasses.replace(
                    overpass,
                    endpoints=tuple(e.url for e in Endpoint.parse_list(args.endpoints)),
                )
            query = Path(args.query_file).read_text()
            sync = BoundarySync(
                RetryingClient(overpass),
                recorder,
                gap_type=args.gap_type,
                id_property=args.id_property,
            )
            plan = sync.plan(query, args.backup)
            output = plan.to_dict()
            matched = plan.result is None or plan.result.matched
    except (IngestionError, OSError, ValueError) as e:
        logger.error(f"✗ Reconciliation failed: {e}")
        return 1
    finally:
        if store is not None:
            store.close()

    text = json.dumps(output, indent=2, default=str)
    if args.output:
        Path(args.output).write_text(text)
        logger.info(f"Result saved to {args.output}")
    print(text)

    return 1 if args.fail_on_gap and not matched else 0


def _read_any_backup(path: str, id_property: str):
    if path.endswith((".json", ".geojson", ".gz")):
        return read_backup_ids(path, id_property)
    return read_id_list(path)


def cmd_schedule(args: argparse.Namespace) -> int:
    """
    Run ingestion periodically until interrupted

    Args:
        args: Parsed command-line arguments
    """
    config = build_config(args)

    if args.metrics_port:
        initialize_metrics(port=args.metrics_port)

    job_kwargs = {
        "output_dir": args.output_dir,
        "report_dir": args.report_dir,
        "input_path": args.input,
        "download_url": args.url,
        "load_statement": args.load_statement,
        "validate_parts": args.validate,
        "config": config,
    }

    scheduler = IngestionScheduler()
    try:
        if args.cron:
            scheduler.add_cron_job(ingest_job_wrapper, args.cron, "ingestion_job", **job_kwargs)
        else:
            scheduler.add_interval_job(ingest_job_wrapper, args.interval, "ingestion_job", **job_kwargs)
    except ValueError as e:
        logger.error(f"Invalid schedule: {e}")
        return 1

    logger.info("Starting scheduler (press Ctrl+C to stop)")
    scheduler.start()
    return 0


def cmd_report(args: argparse.Namespace) -> int:
    """
    Show or re-export a saved run report

    Args:
        args: Parsed command-line arguments
    """
    try:
        with open(args.input) as f:
            report = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to read report {args.input}: {e}")
        return 1

    if args.format == "console":
        try:
            print(format_report_console(report))
        except KeyError as e:
            logger.error(f"{args.input} is not a run report (missing {e})")
            return 1
    else:
        if not args.output:
            logger.error("Output file required for JSON format")
            return 1
        export_report_json(report, args.output)
        logger.info(f"Report exported to {args.output}")

    return 0

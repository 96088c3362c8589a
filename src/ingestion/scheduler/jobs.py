"""
Job wrapper for scheduled ingestion runs.
"""

import logging
from datetime import UTC, datetime
from pathlib import Path

from ingestion.config import IngestionConfig
from ingestion.download import download_file
from ingestion.pipeline import NotesPipeline, RunStatus, RunSummary
from ingestion.report import export_report_json, generate_run_report
from ingestion.store import TargetStore

logger = logging.getLogger(__name__)


def ingest_job_wrapper(
    output_dir: str,
    report_dir: str,
    input_path: str | None = None,
    download_url: str | None = None,
    load_statement: str | None = None,
    validate_parts: bool = False,
    config: IngestionConfig | None = None,
) -> RunSummary:
    """
    Run one scheduled ingestion and save its report

    Either input_path or download_url must be given. With download_url the
    document is fetched into output_dir first. Without load_statement the
    run is a dry run: parts are produced and validated but not loaded.

    Returns:
        RunSummary of the run
    """
    if not input_path and not download_url:
        raise ValueError("Either input_path or download_url is required")

    config = config or IngestionConfig.from_env()
    timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
    Path(report_dir).mkdir(parents=True, exist_ok=True)
    report_path = Path(report_dir) / f"ingest_{timestamp}.json"

    logger.info(f"Starting scheduled ingestion at {timestamp}")

    if download_url:
        input_path = str(download_file(download_url, Path(output_dir) / f"notes_{timestamp}.xml"))

    store = TargetStore.from_settings(config.database) if load_statement else None
    try:
        pipeline = NotesPipeline(
            config,
            store=store,
            load_statement=load_statement,
            validate_parts=validate_parts,
        )
        summary = pipeline.process_document(input_path, output_dir)
    finally:
        if store is not None:
            store.close()

    report = generate_run_report([summary])
    export_report_json(report, report_path)

    log = logger.error if summary.status is RunStatus.FAIL else logger.info
    log(f"Scheduled ingestion finished with status {summary.status.value}, report saved to {report_path}")
    return summary

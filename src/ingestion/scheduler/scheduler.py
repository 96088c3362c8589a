"""
APScheduler-based ingestion scheduler.

Runs ingestion jobs periodically, on a fixed interval or a cron schedule.
"""

import logging
from typing import Any, Callable

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)


def parse_cron_expression(cron_expression: str) -> CronTrigger:
    """
    Build a trigger from a 5-field cron expression

    Raises:
        ValueError: If the expression does not have exactly 5 fields
    """
    parts = cron_expression.split()

    if len(parts) != 5:
        raise ValueError(
            "Cron expression must have 5 parts: minute hour day month day_of_week"
        )

    minute, hour, day, month, day_of_week = parts
    return CronTrigger(
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=day_of_week,
    )


class IngestionScheduler:
    """
    Scheduler for daemon-mode ingestion

    Jobs never overlap: a run that is still going when the next one is due
    makes the scheduler skip that occurrence.
    """

    def __init__(self, scheduler: BlockingScheduler | None = None):
        self.scheduler = scheduler or BlockingScheduler()
        self.jobs = []

    def _add(self, job_func: Callable, trigger: Any, job_id: str, kwargs: dict[str, Any]) -> None:
        job = self.scheduler.add_job(
            job_func,
            trigger=trigger,
            id=job_id,
            kwargs=kwargs,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.jobs = [j for j in self.jobs if j.id != job_id]
        self.jobs.append(job)

    def add_interval_job(
        self,
        job_func: Callable,
        interval_seconds: int,
        job_id: str,
        **kwargs,
    ) -> None:
        """
        Add a job that runs at fixed intervals

        Args:
            job_func: Function to execute
            interval_seconds: Interval in seconds
            job_id: Unique identifier for the job
            **kwargs: Additional arguments to pass to job_func
        """
        if interval_seconds < 1:
            raise ValueError(f"interval_seconds must be >= 1, got {interval_seconds}")

        self._add(job_func, IntervalTrigger(seconds=interval_seconds), job_id, kwargs)
        logger.info(f"Added interval job '{job_id}' with {interval_seconds}s interval")

    def add_cron_job(
        self,
        job_func: Callable,
        cron_expression: str,
        job_id: str,
        **kwargs,
    ) -> None:
        """
        Add a job that runs on a cron schedule

        Example cron expressions:
            "*/15 * * * *" - Every 15 minutes (API notes)
            "0 3 * * *"    - Daily at 03:00 (planet dump)
        """
        self._add(job_func, parse_cron_expression(cron_expression), job_id, kwargs)
        logger.info(f"Added cron job '{job_id}' with schedule '{cron_expression}'")

    def remove_job(self, job_id: str) -> None:
        self.scheduler.remove_job(job_id)
        self.jobs = [job for job in self.jobs if job.id != job_id]
        logger.info(f"Removed job '{job_id}'")

    def start(self) -> None:
        """
        Start the scheduler

        Blocks the current thread until interrupted.
        """
        logger.info(f"Starting ingestion scheduler with {len(self.jobs)} job(s)")

        try:
            self.scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            logger.info("Scheduler stopped by user")
            self.stop()

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown()
        logger.info("Scheduler stopped")

    def list_jobs(self) -> list[dict[str, Any]]:
        job_list = []

        for job in self.scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            job_list.append(
                {
                    "id": job.id,
                    "name": job.name,
                    "next_run_time": next_run.isoformat() if next_run else None,
                    "trigger": str(job.trigger),
                }
            )

        return job_list

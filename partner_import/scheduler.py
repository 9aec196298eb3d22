"""APScheduler-based interval scheduling for Partner Center imports."""

from __future__ import annotations

import logging
import time

from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.schedulers.blocking import BlockingScheduler

from partner_import.config import ImportConfig
from partner_import.db import Database
from partner_import.errors import AuthFailure, ConfigurationError, InvalidArgument, InvalidState
from partner_import.runner import ImportRunner

logger = logging.getLogger("partner_import.scheduler")

# Retrying cannot fix these
NON_RETRYABLE = (AuthFailure, ConfigurationError, InvalidArgument, InvalidState)


def _run_import(config: ImportConfig, db: Database, backoff_base: int = 30) -> None:
    """Run one import with retry logic."""
    max_retries = config.scheduler.max_retries

    for attempt in range(max_retries + 1):
        runner = ImportRunner(config, db)
        try:
            runner.run_with_tracking()
            return
        except NON_RETRYABLE as exc:
            logger.error("Import failed and will not be retried: %s", exc)
            return
        except Exception as exc:
            if attempt < max_retries:
                delay = backoff_base * (2 ** attempt)
                logger.warning(
                    "Import failed (attempt %d/%d), retrying in %ds: %s",
                    attempt + 1, max_retries, delay, exc,
                )
                time.sleep(delay)
            else:
                logger.error(
                    "Import failed after %d retries: %s",
                    max_retries, exc,
                )


def _on_job_error(event) -> None:
    """Log job execution errors."""
    logger.error(
        "Job %s raised an exception: %s",
        event.job_id,
        event.exception,
    )


def start_scheduler(config: ImportConfig, db: Database) -> None:
    """Start the blocking scheduler with the import interval job."""
    scheduler = BlockingScheduler()
    scheduler.add_listener(_on_job_error, EVENT_JOB_ERROR)
    sched = config.scheduler

    scheduler.add_job(
        _run_import,
        "interval",
        minutes=sched.import_interval_min,
        args=[config, db],
        id=ImportRunner.CONNECTOR_NAME,
        max_instances=1,
        misfire_grace_time=sched.misfire_grace_time,
    )

    logger.info("Starting scheduler with jobs: %s",
                [j.id for j in scheduler.get_jobs()])
    scheduler.start()

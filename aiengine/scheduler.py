"""Scheduler — re-ingests configured repositories on cron schedules using APScheduler."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from aiengine.context.ingest import ingest_repo
from aiengine.errors import IngestionError

if TYPE_CHECKING:
    from aiengine.config import IngestScheduleConfig, ScheduleConfig
    from aiengine.runtime import Runtime

logger = logging.getLogger(__name__)


def build_trigger(schedule: ScheduleConfig) -> CronTrigger:
    """Convert a ScheduleConfig into an APScheduler CronTrigger."""
    match schedule.frequency:
        case "daily":
            return CronTrigger(hour=schedule.hour)
        case "weekly":
            return CronTrigger(day_of_week=schedule.day_of_week, hour=schedule.hour)
        case "monthly":
            return CronTrigger(day=schedule.day_of_month, hour=schedule.hour)
        case _:
            raise ValueError(f"Unknown schedule frequency: {schedule.frequency}")


async def run_scheduled_ingest(job: IngestScheduleConfig, runtime: Runtime) -> None:
    """Re-ingest one repository into the shared retrieval index."""
    logger.info(f"Scheduled ingest: {job.repo_url} (workspace={job.workspace})")
    try:
        count = await ingest_repo(
            job.repo_url,
            runtime.retrieval,
            workspace=job.workspace,
            config=runtime.config.ingest,
        )
    except IngestionError as e:
        logger.error(f"Scheduled ingest of {job.repo_url} failed: {e.message}")
        return
    except Exception as e:
        logger.error(f"Scheduled ingest of {job.repo_url} crashed: {e}", exc_info=True)
        return
    logger.info(f"Scheduled ingest of {job.repo_url} completed: {count} files")


def setup_scheduler(runtime: Runtime) -> AsyncIOScheduler:
    """Build and configure the scheduler from the runtime's config."""
    scheduler = AsyncIOScheduler()

    for i, job in enumerate(runtime.config.ingest_schedules):
        scheduler.add_job(
            run_scheduled_ingest,
            trigger=build_trigger(job.schedule),
            args=[job, runtime],
            id=f"ingest_{job.workspace}_{i}",
            replace_existing=True,
        )
        logger.info(
            f"Scheduled ingest: repo={job.repo_url}, workspace={job.workspace}, "
            f"frequency={job.schedule.frequency}, hour={job.schedule.hour}"
        )

    return scheduler

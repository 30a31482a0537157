"""
Scheduler host for the reminder jobs.

Handles:
- Due-check (every minute by default)
- Missed-reminder recovery (hourly)
- Retention cleanup (daily at 3 AM)
- Database health check (every 5 minutes, when a database is configured)
"""

import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config import settings
from ..database.connection import Database
from ..monitoring.prometheus import errors_total
from ..utils.datetime_utils import get_scheduler_tz
from .due_check import DueReminderScanner
from .pool import DispatchPool
from .recovery import RecoveryScanner
from .retention import RetentionJob

logger = logging.getLogger(__name__)

DUE_CHECK_JOB_ID = "due_check"
RECOVERY_JOB_ID = "missed_reminder_recovery"
RETENTION_JOB_ID = "reminder_retention"
HEALTH_JOB_ID = "database_health"


class ReminderJobs:
    """
    Registers the reminder jobs on an AsyncIOScheduler.

    Each job runs with max_instances=1 and coalesce=True, so a slow tick is
    never overlapped by the next one and missed runs collapse into one.
    """

    def __init__(
        self,
        due_check: DueReminderScanner,
        recovery: RecoveryScanner,
        retention: RetentionJob,
        pool: DispatchPool,
        database: Optional[Database] = None,
    ):
        self.due_check = due_check
        self.recovery = recovery
        self.retention = retention
        self.pool = pool
        self.database = database
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.timezone = get_scheduler_tz()

    def start(self) -> None:
        """Start the scheduler with all jobs."""
        self.scheduler = AsyncIOScheduler(timezone=self.timezone)

        self.scheduler.add_job(
            self._due_check_job,
            IntervalTrigger(minutes=settings.due_check_interval_minutes),
            id=DUE_CHECK_JOB_ID,
            name="Due Reminder Check",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )

        self.scheduler.add_job(
            self._recovery_job,
            IntervalTrigger(minutes=settings.recovery_interval_minutes),
            id=RECOVERY_JOB_ID,
            name="Missed Reminder Recovery",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )

        self.scheduler.add_job(
            self._retention_job,
            CronTrigger(
                hour=settings.retention_hour,
                minute=0,
                timezone=self.timezone
            ),
            id=RETENTION_JOB_ID,
            name="Reminder Retention Cleanup",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )

        if self.database is not None:
            self.scheduler.add_job(
                self._health_check_job,
                IntervalTrigger(minutes=5),
                id=HEALTH_JOB_ID,
                name="Database Health Check",
                replace_existing=True,
                max_instances=1,
                coalesce=True
            )

        self.scheduler.start()
        logger.info(
            f"Scheduler started: due check every {settings.due_check_interval_minutes} min, "
            f"recovery every {settings.recovery_interval_minutes} min, "
            f"retention daily at {settings.retention_hour}:00"
        )

    def stop(self) -> None:
        """Stop the scheduler without waiting for running jobs."""
        if self.scheduler:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
            logger.info("Scheduler stopped")

    async def shutdown(self, timeout: float = 30.0) -> None:
        """Stop scheduling new ticks, then let in-flight dispatches wind down."""
        self.stop()
        await self.pool.shutdown(timeout=timeout)

    async def _due_check_job(self) -> None:
        try:
            await self.due_check.tick()
        except Exception as e:
            logger.error(f"Error in due check job: {e}", exc_info=True)
            errors_total.labels(type=type(e).__name__, severity="error").inc()

    async def _recovery_job(self) -> None:
        logger.info("Running missed reminder recovery job")
        try:
            await self.recovery.scan()
        except Exception as e:
            logger.error(f"Error in recovery job: {e}", exc_info=True)
            errors_total.labels(type=type(e).__name__, severity="error").inc()

    async def _retention_job(self) -> None:
        logger.info("Running reminder retention job")
        try:
            await self.retention.run()
        except Exception as e:
            logger.error(f"Error in retention job: {e}", exc_info=True)
            errors_total.labels(type=type(e).__name__, severity="error").inc()

    async def _health_check_job(self) -> None:
        status = await self.database.health_check()
        if status.get("status") != "healthy":
            logger.error(f"Database health check failed: {status.get('error')}")
            errors_total.labels(type="DatabaseUnhealthy", severity="error").inc()
        else:
            logger.debug(f"Database healthy: {status.get('pool')}")

    def trigger_job(self, job_id: str) -> bool:
        """Manually trigger a job."""
        if not self.scheduler:
            return False

        job = self.scheduler.get_job(job_id)
        if job:
            job.modify(next_run_time=datetime.now(self.timezone))
            return True

        return False

    def get_job_status(self) -> dict:
        """Get status of all scheduled jobs."""
        if not self.scheduler:
            return {}

        jobs = {}
        for job in self.scheduler.get_jobs():
            jobs[job.id] = {
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger)
            }

        return jobs

"""
Missed-reminder reconciliation.

A reminder still Scheduled more than the grace period after its fire time
was missed by the due-check (restart, scheduler gap). Inside the upper bound
it is re-submitted; beyond it, it is only counted and reported so an operator
decides what to do with it.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from config import settings
from ..database.repositories.base import ReminderRepository
from ..monitoring.prometheus import reminders_abandoned, reminders_recovered_total
from ..utils.datetime_utils import Clock, minutes_ago, utc_now
from .pool import DispatchPool

logger = logging.getLogger(__name__)


@dataclass
class RecoveryReport:
    missed: int = 0
    resubmitted: int = 0
    abandoned: int = 0


class RecoveryScanner:
    """Re-submits reminders that fell through the due-check."""

    def __init__(
        self,
        repository: ReminderRepository,
        pool: DispatchPool,
        clock: Clock = utc_now,
        grace_minutes: Optional[int] = None,
        upper_bound_minutes: Optional[int] = None,
    ):
        self.repository = repository
        self.pool = pool
        self.clock = clock
        self.grace_minutes = settings.missed_grace_minutes if grace_minutes is None else grace_minutes
        self.upper_bound_minutes = (
            settings.missed_upper_bound_minutes if upper_bound_minutes is None else upper_bound_minutes
        )
        if self.upper_bound_minutes <= self.grace_minutes:
            raise ValueError("Missed-reminder upper bound must be larger than the grace period")

    async def scan(self) -> RecoveryReport:
        now = self.clock()
        newest = minutes_ago(now, self.grace_minutes)
        oldest = minutes_ago(now, self.upper_bound_minutes)

        report = RecoveryReport()
        missed = await self.repository.list_missed_reminders(oldest, newest)
        report.missed = len(missed)

        for reminder in missed:
            try:
                if self.pool.submit(reminder.id, source="recovery"):
                    report.resubmitted += 1
            except Exception as e:
                logger.error(f"Failed to resubmit missed reminder {reminder.id}: {e}", exc_info=True)

        if report.resubmitted:
            reminders_recovered_total.inc(report.resubmitted)
            logger.warning(f"Recovery: resubmitted {report.resubmitted} of {report.missed} missed reminder(s)")

        report.abandoned = await self.repository.count_stale_reminders(oldest)
        reminders_abandoned.set(report.abandoned)
        if report.abandoned:
            logger.error(
                f"Recovery: {report.abandoned} Scheduled reminder(s) are more than "
                f"{self.upper_bound_minutes} minutes past their fire time and will not be triggered automatically"
            )

        logger.info(
            f"Recovery scan done: missed={report.missed} resubmitted={report.resubmitted} "
            f"abandoned={report.abandoned}"
        )
        return report

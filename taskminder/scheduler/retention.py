"""Retention: soft-deletes old Triggered/Cancelled reminders."""

import logging
from datetime import timedelta
from typing import Optional

from config import settings
from ..database.repositories.base import ReminderRepository
from ..monitoring.prometheus import reminders_purged_total
from ..utils.datetime_utils import Clock, utc_now

logger = logging.getLogger(__name__)

CLEANUP_ACTOR = "system-cleanup"


class RetentionJob:
    """Purges one batch of expired terminal reminders per run."""

    def __init__(
        self,
        repository: ReminderRepository,
        clock: Clock = utc_now,
        retention_days: Optional[int] = None,
        batch_size: Optional[int] = None,
    ):
        self.repository = repository
        self.clock = clock
        self.retention_days = retention_days or settings.retention_days
        self.batch_size = batch_size or settings.retention_batch_size

    async def run(self) -> int:
        now = self.clock()
        cutoff = now - timedelta(days=self.retention_days)

        expired = await self.repository.list_terminal_reminders_older_than(cutoff, self.batch_size)
        if not expired:
            logger.debug("Retention: nothing to purge")
            return 0

        purged = await self.repository.soft_delete_reminders(
            [reminder.id for reminder in expired], CLEANUP_ACTOR, now
        )
        reminders_purged_total.inc(purged)
        logger.info(f"Retention: purged {purged} reminder(s) last updated before {cutoff.isoformat()}")
        return purged

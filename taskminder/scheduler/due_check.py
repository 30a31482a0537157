"""Periodic due-check: hands every due reminder to the dispatch pool."""

import logging
from typing import Optional

from config import settings
from ..database.repositories.base import ReminderRepository
from ..monitoring.prometheus import due_check_batch_size
from ..utils.datetime_utils import Clock, utc_now
from .pool import DispatchPool

logger = logging.getLogger(__name__)


class DueReminderScanner:
    """Finds Scheduled reminders whose fire time has passed."""

    def __init__(
        self,
        repository: ReminderRepository,
        pool: DispatchPool,
        clock: Clock = utc_now,
        batch_size: Optional[int] = None,
    ):
        self.repository = repository
        self.pool = pool
        self.clock = clock
        self.batch_size = batch_size or settings.due_check_batch_size

    async def tick(self) -> int:
        """
        Run one due-check.

        Reminders are submitted oldest first and the tick returns without
        waiting for any dispatch to finish.

        Returns:
            Number of reminders submitted to the pool
        """
        now = self.clock()
        due = await self.repository.list_due_reminders(now, self.batch_size)
        due_check_batch_size.observe(len(due))

        if not due:
            logger.debug("Due check: no due reminders")
            return 0

        submitted = 0
        for reminder in due:
            try:
                if self.pool.submit(reminder.id, source="due_check"):
                    submitted += 1
            except Exception as e:
                logger.error(f"Failed to submit reminder {reminder.id} for dispatch: {e}", exc_info=True)

        logger.info(f"Due check: {len(due)} due reminder(s), {submitted} submitted")
        if len(due) >= self.batch_size:
            logger.warning(f"Due check batch is full ({self.batch_size}), the rest waits for the next tick")

        return submitted

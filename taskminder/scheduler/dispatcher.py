"""
Reminder dispatch: the per-reminder unit of work.

One attempt re-loads the reminder, re-checks it is still Scheduled, loads the
owning work item, calls the notifier and persists the terminal status. The
retry schedule wraps the whole attempt and only reacts to infrastructure
errors; a notifier failure is recorded on the reminder and never retried.
"""

import asyncio
import logging
from enum import Enum
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from config import settings
from ..database.exceptions import DatabaseError
from ..database.repositories.base import ReminderRepository
from ..models import EventHandler, ReminderStatus, publish_events
from ..models.transitions import can_trigger_reminder
from ..monitoring.prometheus import (
    errors_total,
    reminder_dispatch_duration,
    reminder_dispatch_retries_exhausted_total,
    reminder_dispatch_retries_total,
    reminder_dispatch_total,
)
from ..notifications.notifier import Notifier
from ..utils.datetime_utils import Clock, utc_now
from ..utils.retry import RetryExhausted, retry_with_backoff

logger = logging.getLogger(__name__)

WORK_ITEM_NOT_FOUND = "Work item not found"

# Failures worth another attempt. Anything else is a bug and propagates.
INFRASTRUCTURE_ERRORS = (DatabaseError, SQLAlchemyError, ConnectionError, asyncio.TimeoutError)


class DispatchOutcome(str, Enum):
    TRIGGERED = "triggered"
    FAILED = "failed"
    SKIPPED = "skipped"
    NOT_FOUND = "not_found"
    CANCELLED = "cancelled"
    ABORTED = "aborted"
    RETRIES_EXHAUSTED = "retries_exhausted"


class DispatchCancelled(Exception):
    """The dispatch was asked to stop before anything was committed."""
    pass


class ReminderDispatcher:
    """
    Triggers single reminders.

    Collaborators are passed in explicitly so tests can swap the clock,
    the notifier and the sleep used between retries.
    """

    def __init__(
        self,
        repository: ReminderRepository,
        notifier: Notifier,
        clock: Clock = utc_now,
        retry_delays: Optional[Sequence[float]] = None,
        sleep=asyncio.sleep,
        actor: str = "system",
        event_handler: Optional[EventHandler] = None,
    ):
        self.repository = repository
        self.notifier = notifier
        self.clock = clock
        self.retry_delays = tuple(
            settings.dispatch_retry_delays_seconds if retry_delays is None else retry_delays
        )
        self.sleep = sleep
        self.actor = actor
        self.event_handler = event_handler

    async def dispatch(
        self,
        reminder_id: str,
        cancel_event: Optional[asyncio.Event] = None,
        slot: Optional[asyncio.Semaphore] = None,
        retry_delays: Optional[Sequence[float]] = None,
    ) -> DispatchOutcome:
        """
        Run the dispatch unit for one reminder with the retry schedule.

        Args:
            reminder_id: Reminder to trigger
            cancel_event: When set, the dispatch aborts at the next step boundary
            slot: Worker slot held for the duration of each attempt (not while waiting to retry)
            retry_delays: Override of the configured schedule; () means a single attempt

        Returns:
            The outcome; this never raises for domain or infrastructure failures
        """
        delays = self.retry_delays if retry_delays is None else tuple(retry_delays)

        try:
            outcome = await retry_with_backoff(
                self._run_attempt,
                reminder_id,
                cancel_event,
                slot,
                delays=delays,
                retry_on=INFRASTRUCTURE_ERRORS,
                skip_on=(DispatchCancelled,),
                sleep=self.sleep,
                on_retry=self._on_retry,
                name=f"dispatch of reminder {reminder_id}",
            )
        except DispatchCancelled as e:
            logger.info(f"{e}; reminder left Scheduled")
            outcome = DispatchOutcome.ABORTED
        except RetryExhausted as e:
            if delays:
                logger.error(
                    f"Dispatch of reminder {reminder_id} gave up after {e.attempts} attempts, "
                    f"reminder stays Scheduled for the next pass: {e}",
                    exc_info=True
                )
                reminder_dispatch_retries_exhausted_total.inc()
                errors_total.labels(type="RetryExhausted", severity="error").inc()
            else:
                # Single attempt requested by a caller, not a systemic failure
                logger.warning(f"Single dispatch attempt for reminder {reminder_id} failed: {e}")
            outcome = DispatchOutcome.RETRIES_EXHAUSTED

        reminder_dispatch_total.labels(outcome=outcome.value).inc()
        return outcome

    def _on_retry(self, attempt: int, error: BaseException) -> None:
        reminder_dispatch_retries_total.labels(error_type=type(error).__name__).inc()

    async def _run_attempt(
        self,
        reminder_id: str,
        cancel_event: Optional[asyncio.Event],
        slot: Optional[asyncio.Semaphore],
    ) -> DispatchOutcome:
        if slot is None:
            return await self._attempt(reminder_id, cancel_event)
        async with slot:
            return await self._attempt(reminder_id, cancel_event)

    @staticmethod
    def _check_cancelled(cancel_event: Optional[asyncio.Event], reminder_id: str, step: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise DispatchCancelled(f"Dispatch of reminder {reminder_id} cancelled before {step}")

    async def _attempt(self, reminder_id: str, cancel_event: Optional[asyncio.Event]) -> DispatchOutcome:
        with reminder_dispatch_duration.time():
            self._check_cancelled(cancel_event, reminder_id, "loading the reminder")
            reminder = await self.repository.get_reminder_by_id(reminder_id)
            if reminder is None:
                logger.warning(f"Reminder {reminder_id} not found, nothing to dispatch")
                return DispatchOutcome.NOT_FOUND

            if reminder.status != ReminderStatus.SCHEDULED:
                logger.info(f"Reminder {reminder_id} is already {reminder.status.value}, skipping")
                return DispatchOutcome.SKIPPED

            self._check_cancelled(cancel_event, reminder_id, "loading the work item")
            work_item = await self.repository.get_work_item_by_id(reminder.work_item_id)

            if work_item is None:
                logger.warning(f"Work item {reminder.work_item_id} of reminder {reminder_id} not found")
                events = reminder.mark_failed(WORK_ITEM_NOT_FOUND, self.actor, self.clock())
                await self.repository.update_reminder(reminder)
                await publish_events(self.event_handler, events)
                return DispatchOutcome.FAILED

            if not can_trigger_reminder(work_item):
                logger.info(
                    f"Work item {work_item.id} is {work_item.state.value}, "
                    f"cancelling reminder {reminder_id} instead of triggering it"
                )
                events = reminder.cancel(self.actor, self.clock(), reason=f"work item {work_item.state.value}")
                await self.repository.update_reminder(reminder)
                await publish_events(self.event_handler, events)
                return DispatchOutcome.CANCELLED

            self._check_cancelled(cancel_event, reminder_id, "notifying")
            try:
                await self.notifier.send_reminder(work_item.title, reminder.message, reminder.fire_at)
            except Exception as e:
                error = str(e) or type(e).__name__
                logger.warning(f"Notification for reminder {reminder_id} failed: {error}")
                events = reminder.mark_failed(error, self.actor, self.clock())
                outcome = DispatchOutcome.FAILED
            else:
                events = reminder.mark_triggered(self.actor, self.clock())
                outcome = DispatchOutcome.TRIGGERED

            await self.repository.update_reminder(reminder)

        await publish_events(self.event_handler, events)
        logger.info(f"Reminder {reminder_id} {outcome.value}")
        return outcome

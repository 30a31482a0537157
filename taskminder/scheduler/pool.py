"""
Bounded pool of concurrent dispatch units.

Submission is fire-and-forget: callers never wait for a dispatch to finish.
A reminder id already in flight is not submitted a second time.
"""

import asyncio
import logging
from typing import Dict, Optional, Set

from config import settings
from ..monitoring.prometheus import dispatch_pool_in_flight, due_check_submitted_total
from ..utils.background_tasks import create_safe_task
from .dispatcher import ReminderDispatcher

logger = logging.getLogger(__name__)


class DispatchPool:
    """Runs ReminderDispatcher.dispatch as background tasks, at most max_workers at a time."""

    def __init__(self, dispatcher: ReminderDispatcher, max_workers: Optional[int] = None):
        self.dispatcher = dispatcher
        self.max_workers = max_workers or settings.dispatch_worker_count
        self._slots = asyncio.Semaphore(self.max_workers)
        self._stopping = asyncio.Event()
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._tasks: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    @property
    def is_accepting(self) -> bool:
        return not self._stopping.is_set()

    def is_in_flight(self, reminder_id: str) -> bool:
        return reminder_id in self._in_flight

    def submit(self, reminder_id: str, source: str = "due_check") -> bool:
        """
        Queue a dispatch for the reminder.

        Returns:
            True if a new dispatch was started, False if the reminder is already
            in flight or the pool is shutting down
        """
        if self._stopping.is_set():
            logger.warning(f"Dispatch pool is shutting down, not accepting reminder {reminder_id}")
            return False

        if reminder_id in self._in_flight:
            logger.debug(f"Reminder {reminder_id} already in flight, not resubmitting")
            return False

        task = create_safe_task(
            self.dispatcher.dispatch(reminder_id, cancel_event=self._stopping, slot=self._slots),
            f"dispatch-{reminder_id}",
            registry=self._tasks,
        )
        self._in_flight[reminder_id] = task
        task.add_done_callback(lambda t, rid=reminder_id: self._finished(rid, t))

        due_check_submitted_total.labels(source=source).inc()
        dispatch_pool_in_flight.set(len(self._in_flight))
        return True

    def _finished(self, reminder_id: str, task: asyncio.Task) -> None:
        if self._in_flight.get(reminder_id) is task:
            del self._in_flight[reminder_id]
        dispatch_pool_in_flight.set(len(self._in_flight))

    async def drain(self) -> None:
        """Wait until every submitted dispatch has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self, timeout: float = 30.0) -> None:
        """
        Stop accepting work and signal running dispatches to abort.

        Dispatches get `timeout` seconds to reach a step boundary; whatever is
        still running after that is cancelled.
        """
        self._stopping.set()
        pending = list(self._tasks)
        if not pending:
            logger.info("Dispatch pool stopped")
            return

        logger.info(f"Waiting for {len(pending)} dispatch(es) to stop")
        _, still_running = await asyncio.wait(pending, timeout=timeout)

        if still_running:
            logger.warning(f"Cancelling {len(still_running)} dispatch(es) still running after {timeout}s")
            for task in still_running:
                task.cancel()
            await asyncio.gather(*still_running, return_exceptions=True)

        logger.info("Dispatch pool stopped")

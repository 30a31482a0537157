"""
Unit tests for the due-check scanner.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, Mock

import pytest

from taskminder.models import ReminderStatus
from taskminder.scheduler import DispatchPool, DueReminderScanner, ReminderDispatcher

USER = "alice"


@pytest.fixture
def pool():
    pool = Mock()
    pool.submit = Mock(return_value=True)
    return pool


class TestTick:

    @pytest.mark.asyncio
    async def test_empty_batch_is_a_no_op(self, repository, pool, clock):
        scanner = DueReminderScanner(repository, pool, clock=clock, batch_size=100)

        assert await scanner.tick() == 0
        pool.submit.assert_not_called()

    @pytest.mark.asyncio
    async def test_due_reminders_are_submitted_oldest_first(self, repository, pool, work_item, clock):
        now = clock()
        late, _ = work_item.schedule_reminder(now + timedelta(hours=3), "late", USER, now)
        early, _ = work_item.schedule_reminder(now + timedelta(hours=1), "early", USER, now)
        future, _ = work_item.schedule_reminder(now + timedelta(days=2), "future", USER, now)
        await repository.add_work_item(work_item)
        clock.advance(hours=4)

        submitted = await DueReminderScanner(repository, pool, clock=clock, batch_size=100).tick()

        assert submitted == 2
        assert [c.args[0] for c in pool.submit.call_args_list] == [early.id, late.id]
        assert all(c.kwargs["source"] == "due_check" for c in pool.submit.call_args_list)

    @pytest.mark.asyncio
    async def test_batch_size_caps_the_tick(self, repository, pool, work_item, clock):
        for i in range(4):
            work_item.schedule_reminder(clock() + timedelta(minutes=i + 1), f"r{i}", USER, clock())
        await repository.add_work_item(work_item)
        clock.advance(hours=1)

        submitted = await DueReminderScanner(repository, pool, clock=clock, batch_size=3).tick()

        assert submitted == 3

    @pytest.mark.asyncio
    async def test_one_failed_submission_does_not_stop_the_batch(self, repository, pool, work_item, clock):
        for i in range(3):
            work_item.schedule_reminder(clock() + timedelta(minutes=i + 1), f"r{i}", USER, clock())
        await repository.add_work_item(work_item)
        clock.advance(hours=1)
        pool.submit.side_effect = [True, RuntimeError("queue full"), True]

        submitted = await DueReminderScanner(repository, pool, clock=clock, batch_size=100).tick()

        assert submitted == 2
        assert pool.submit.call_count == 3

    @pytest.mark.asyncio
    async def test_repository_failure_propagates_to_the_job(self, pool, clock):
        repository = Mock()
        repository.list_due_reminders = AsyncMock(side_effect=ConnectionError("db down"))

        with pytest.raises(ConnectionError):
            await DueReminderScanner(repository, pool, clock=clock).tick()

    @pytest.mark.asyncio
    async def test_tick_does_not_wait_for_dispatch(self, repository, stored_item_with_reminder, clock):
        """Dispatch happens in the pool after tick() has returned."""
        _, reminder = stored_item_with_reminder
        notifier = Mock()
        notifier.send_reminder = AsyncMock()
        dispatcher = ReminderDispatcher(repository, notifier, clock=clock)
        pool = DispatchPool(dispatcher, max_workers=2)
        clock.advance(hours=2)

        assert await DueReminderScanner(repository, pool, clock=clock).tick() == 1
        assert (await repository.get_reminder_by_id(reminder.id)).status == ReminderStatus.SCHEDULED

        await pool.drain()
        assert (await repository.get_reminder_by_id(reminder.id)).status == ReminderStatus.TRIGGERED

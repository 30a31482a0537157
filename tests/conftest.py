"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timedelta
from typing import List, Optional

import pytest
import pytest_asyncio
import pytz

from taskminder.database.repositories import InMemoryRepository
from taskminder.models import WorkItem, WorkItemState
from taskminder.notifications import NotificationError, Notifier
from taskminder.utils.datetime_utils import FrozenClock

START = datetime(2026, 3, 2, 9, 0, tzinfo=pytz.UTC)
TENANT = "tenant-1"
USER = "alice"


class RecordingNotifier(Notifier):
    """Notifier that records calls and can be told to fail."""

    def __init__(self, error: Optional[Exception] = None):
        self.sent: List[dict] = []
        self.error = error

    async def send_reminder(self, work_item_title: str, message: str, fire_at: datetime) -> None:
        self.sent.append({"title": work_item_title, "message": message, "fire_at": fire_at})
        if self.error is not None:
            raise self.error


async def instant_sleep(delay: float) -> None:
    return None


@pytest.fixture
def clock():
    """Clock frozen at a fixed Monday morning."""
    return FrozenClock(START)


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def failing_notifier():
    return RecordingNotifier(error=NotificationError("SMTP server rejected the message"))


@pytest.fixture
def work_item(clock):
    """Draft work item due in 7 days."""
    item, _ = WorkItem.create(
        tenant_id=TENANT,
        title="Prepare quarterly report",
        actor=USER,
        now=clock(),
        due_at=clock() + timedelta(days=7),
        estimated_hours=10,
    )
    return item


@pytest.fixture
def in_progress_item(work_item, clock):
    work_item.change_state(WorkItemState.IN_PROGRESS, USER, clock())
    return work_item


@pytest_asyncio.fixture
async def stored_item_with_reminder(repository, work_item, clock):
    """Work item persisted with one reminder firing in one hour."""
    reminder, _ = work_item.schedule_reminder(clock() + timedelta(hours=1), "Check the numbers", USER, clock())
    await repository.add_work_item(work_item)
    return work_item, reminder


@pytest.fixture
def make_notifier():
    """Factory for recording notifiers, optionally failing with `error`."""
    return RecordingNotifier


@pytest.fixture
def no_sleep():
    """Sleep replacement so retry schedules run instantly."""
    return instant_sleep

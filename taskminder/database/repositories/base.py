"""
Repository contract consumed by the service layer and the background jobs.

Every update is a version compare-and-increment: the write only succeeds if
the stored version still equals the version the entity was loaded with,
otherwise ConcurrencyError is raised and nothing is written.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Sequence

from ...models import Reminder, WorkItem


class ReminderRepository(ABC):
    """Persistence for work items and their reminders."""

    # ==================== WORK ITEMS ====================

    @abstractmethod
    async def add_work_item(self, item: WorkItem) -> None:
        """Insert a new work item together with any reminders it already has."""

    @abstractmethod
    async def get_work_item_by_id(self, work_item_id: str) -> Optional[WorkItem]:
        """Load a work item with its non-deleted reminders, or None."""

    @abstractmethod
    async def update_work_item(self, item: WorkItem) -> None:
        """Persist the whole aggregate (item plus reminders) in one transaction."""

    @abstractmethod
    async def list_overdue_work_items(self, tenant_id: str, now: datetime) -> List[WorkItem]:
        """Work items of a tenant whose due date passed and that are not settled."""

    # ==================== REMINDERS ====================

    @abstractmethod
    async def get_reminder_by_id(self, reminder_id: str) -> Optional[Reminder]:
        """Load a single non-deleted reminder, or None."""

    @abstractmethod
    async def get_reminders_for_work_item(self, work_item_id: str) -> List[Reminder]:
        """Non-deleted reminders of one work item ordered by fire time."""

    @abstractmethod
    async def update_reminder(self, reminder: Reminder) -> None:
        """Persist one reminder."""

    @abstractmethod
    async def list_due_reminders(self, now: datetime, limit: int) -> List[Reminder]:
        """Scheduled reminders with fire_at <= now, oldest first, at most `limit`."""

    @abstractmethod
    async def list_missed_reminders(self, oldest: datetime, newest: datetime) -> List[Reminder]:
        """Scheduled reminders with oldest <= fire_at < newest, oldest first."""

    @abstractmethod
    async def count_stale_reminders(self, before: datetime) -> int:
        """Number of Scheduled reminders with fire_at < before."""

    @abstractmethod
    async def list_terminal_reminders_older_than(self, cutoff: datetime, limit: int) -> List[Reminder]:
        """Triggered/Cancelled reminders last updated before `cutoff`."""

    @abstractmethod
    async def soft_delete_reminders(self, reminder_ids: Sequence[str], actor: str, now: datetime) -> int:
        """Soft-delete the given reminders; returns how many were marked."""

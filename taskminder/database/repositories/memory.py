"""
In-memory repository.

Stores deep copies so callers never share state with the store, exactly
like rows loaded from a database. A single asyncio.Lock makes each call one
atomic unit of work.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from ...models import (
    PURGEABLE_REMINDER_STATUSES,
    Reminder,
    ReminderStatus,
    WorkItem,
    mark_deleted,
)
from ..exceptions import ConcurrencyError, DatabaseConstraintError, EntityNotFoundError
from .base import ReminderRepository

logger = logging.getLogger(__name__)


def _snapshot(entity):
    copy = entity.model_copy(deep=True)
    copy.audit.stored_version = copy.audit.version
    return copy


class InMemoryRepository(ReminderRepository):
    """Repository backed by plain dicts."""

    def __init__(self):
        self._work_items: Dict[str, WorkItem] = {}
        self._reminders: Dict[str, Reminder] = {}
        self._lock = asyncio.Lock()

    # ==================== HELPERS ====================

    def _live_reminders_for(self, work_item_id: str) -> List[Reminder]:
        reminders = [
            r for r in self._reminders.values()
            if r.work_item_id == work_item_id and not r.audit.is_deleted
        ]
        return sorted(reminders, key=lambda r: r.fire_at)

    def _assemble(self, stored: WorkItem) -> WorkItem:
        item = stored.model_copy(deep=True)
        item.reminders = [r.model_copy(deep=True) for r in self._live_reminders_for(stored.id)]
        return item

    def _check_version(self, kind: str, entity, stored) -> None:
        if stored is None:
            raise EntityNotFoundError(f"{kind} {entity.id} not found for update")
        if stored.audit.version != entity.audit.stored_version:
            raise ConcurrencyError(kind, entity.id, entity.audit.stored_version)

    def _scheduled(self) -> List[Reminder]:
        return [
            r for r in self._reminders.values()
            if r.status == ReminderStatus.SCHEDULED and not r.audit.is_deleted
        ]

    # ==================== WORK ITEMS ====================

    async def add_work_item(self, item: WorkItem) -> None:
        async with self._lock:
            if item.id in self._work_items:
                raise DatabaseConstraintError(f"Work item {item.id} already exists")

            stored = _snapshot(item)
            stored.reminders = []
            self._work_items[item.id] = stored
            for reminder in item.reminders:
                self._reminders[reminder.id] = _snapshot(reminder)
                reminder.audit.stored_version = reminder.audit.version
            item.audit.stored_version = item.audit.version

    async def get_work_item_by_id(self, work_item_id: str) -> Optional[WorkItem]:
        async with self._lock:
            stored = self._work_items.get(work_item_id)
            if stored is None or stored.audit.is_deleted:
                return None
            return self._assemble(stored)

    async def update_work_item(self, item: WorkItem) -> None:
        async with self._lock:
            # Validate every version before writing anything
            self._check_version("WorkItem", item, self._work_items.get(item.id))
            for reminder in item.reminders:
                if reminder.audit.stored_version is None:
                    if reminder.id in self._reminders:
                        raise DatabaseConstraintError(f"Reminder {reminder.id} already exists")
                    continue
                self._check_version("Reminder", reminder, self._reminders.get(reminder.id))

            stored = _snapshot(item)
            stored.reminders = []
            self._work_items[item.id] = stored
            item.audit.stored_version = item.audit.version

            for reminder in item.reminders:
                self._reminders[reminder.id] = _snapshot(reminder)
                reminder.audit.stored_version = reminder.audit.version

    async def list_overdue_work_items(self, tenant_id: str, now: datetime) -> List[WorkItem]:
        async with self._lock:
            items = [
                self._assemble(w) for w in self._work_items.values()
                if w.tenant_id == tenant_id and not w.audit.is_deleted and w.is_overdue(now)
            ]
        return sorted(items, key=lambda w: w.due_at)

    # ==================== REMINDERS ====================

    async def get_reminder_by_id(self, reminder_id: str) -> Optional[Reminder]:
        async with self._lock:
            stored = self._reminders.get(reminder_id)
            if stored is None or stored.audit.is_deleted:
                return None
            return stored.model_copy(deep=True)

    async def get_reminders_for_work_item(self, work_item_id: str) -> List[Reminder]:
        async with self._lock:
            return [r.model_copy(deep=True) for r in self._live_reminders_for(work_item_id)]

    async def update_reminder(self, reminder: Reminder) -> None:
        async with self._lock:
            self._check_version("Reminder", reminder, self._reminders.get(reminder.id))
            self._reminders[reminder.id] = _snapshot(reminder)
            reminder.audit.stored_version = reminder.audit.version

    async def list_due_reminders(self, now: datetime, limit: int) -> List[Reminder]:
        async with self._lock:
            due = sorted((r for r in self._scheduled() if r.fire_at <= now), key=lambda r: r.fire_at)
            return [r.model_copy(deep=True) for r in due[:limit]]

    async def list_missed_reminders(self, oldest: datetime, newest: datetime) -> List[Reminder]:
        async with self._lock:
            missed = sorted(
                (r for r in self._scheduled() if oldest <= r.fire_at < newest),
                key=lambda r: r.fire_at,
            )
            return [r.model_copy(deep=True) for r in missed]

    async def count_stale_reminders(self, before: datetime) -> int:
        async with self._lock:
            return sum(1 for r in self._scheduled() if r.fire_at < before)

    async def list_terminal_reminders_older_than(self, cutoff: datetime, limit: int) -> List[Reminder]:
        async with self._lock:
            old = sorted(
                (
                    r for r in self._reminders.values()
                    if r.status in PURGEABLE_REMINDER_STATUSES
                    and not r.audit.is_deleted
                    and (r.audit.updated_at or r.audit.created_at) < cutoff
                ),
                key=lambda r: r.audit.updated_at or r.audit.created_at,
            )
            return [r.model_copy(deep=True) for r in old[:limit]]

    async def soft_delete_reminders(self, reminder_ids: Sequence[str], actor: str, now: datetime) -> int:
        deleted = 0
        async with self._lock:
            for reminder_id in reminder_ids:
                stored = self._reminders.get(reminder_id)
                if stored is None or stored.audit.is_deleted:
                    continue
                if stored.status not in PURGEABLE_REMINDER_STATUSES:
                    logger.warning(f"Refusing to purge reminder {reminder_id} in status {stored.status.value}")
                    continue
                mark_deleted(stored.audit, actor, now)
                stored.audit.stored_version = stored.audit.version
                deleted += 1
        return deleted

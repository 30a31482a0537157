"""
SQLAlchemy repository for work items and reminders.

Handles:
- Aggregate load/save (work item plus reminders in one transaction)
- Optimistic concurrency via `UPDATE ... WHERE version = :expected`
- Due / missed / retention queries on (status, fire_at)
- Soft deletes
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select, update, func, and_
from sqlalchemy.exc import IntegrityError, OperationalError, InterfaceError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ...models import (
    AuditInfo,
    PURGEABLE_REMINDER_STATUSES,
    Reminder,
    ReminderStatus,
    WorkItem,
    WorkItemPriority,
    WorkItemState,
)
from ...utils.datetime_utils import ensure_utc, to_naive_utc
from ..connection import Database, get_database
from ..exceptions import (
    ConcurrencyError,
    DatabaseConnectionError,
    DatabaseConstraintError,
    DatabaseOperationError,
)
from ..models import ReminderDB, WorkItemDB
from .base import ReminderRepository

logger = logging.getLogger(__name__)

_SETTLED_STATES = [
    WorkItemState.COMPLETED.value,
    WorkItemState.ARCHIVED.value,
    WorkItemState.CANCELLED.value,
]


# ==================== ROW <-> ENTITY ====================

def _audit_from_row(row) -> AuditInfo:
    return AuditInfo(
        created_at=ensure_utc(row.created_at),
        created_by=row.created_by,
        updated_at=ensure_utc(row.updated_at),
        updated_by=row.updated_by,
        version=row.version,
        deleted_at=ensure_utc(row.deleted_at),
        deleted_by=row.deleted_by,
        stored_version=row.version,
    )


def _audit_values(audit: AuditInfo) -> Dict[str, Any]:
    return {
        "created_at": to_naive_utc(audit.created_at),
        "created_by": audit.created_by,
        "updated_at": to_naive_utc(audit.updated_at),
        "updated_by": audit.updated_by,
        "version": audit.version,
        "deleted_at": to_naive_utc(audit.deleted_at),
        "deleted_by": audit.deleted_by,
    }


def reminder_from_row(row: ReminderDB) -> Reminder:
    return Reminder(
        id=row.id,
        work_item_id=row.work_item_id,
        tenant_id=row.tenant_id,
        fire_at=ensure_utc(row.fire_at),
        message=row.message,
        status=ReminderStatus(row.status),
        triggered_at=ensure_utc(row.triggered_at),
        last_error=row.last_error,
        audit=_audit_from_row(row),
    )


def reminder_values(reminder: Reminder) -> Dict[str, Any]:
    return {
        "work_item_id": reminder.work_item_id,
        "tenant_id": reminder.tenant_id,
        "fire_at": to_naive_utc(reminder.fire_at),
        "message": reminder.message,
        "status": reminder.status.value,
        "triggered_at": to_naive_utc(reminder.triggered_at),
        "last_error": reminder.last_error,
        **_audit_values(reminder.audit),
    }


def work_item_from_row(row: WorkItemDB) -> WorkItem:
    return WorkItem(
        id=row.id,
        tenant_id=row.tenant_id,
        title=row.title,
        description=row.description,
        priority=WorkItemPriority(row.priority),
        state=WorkItemState(row.state),
        due_at=ensure_utc(row.due_at),
        completed_at=ensure_utc(row.completed_at),
        estimated_hours=row.estimated_hours or 0,
        actual_hours=row.actual_hours or 0,
        tags=list(row.tags or []),
        reminders=[reminder_from_row(r) for r in row.reminders if r.deleted_at is None],
        audit=_audit_from_row(row),
    )


def work_item_values(item: WorkItem) -> Dict[str, Any]:
    return {
        "tenant_id": item.tenant_id,
        "title": item.title,
        "description": item.description,
        "priority": item.priority.value,
        "state": item.state.value,
        "due_at": to_naive_utc(item.due_at),
        "completed_at": to_naive_utc(item.completed_at),
        "estimated_hours": item.estimated_hours,
        "actual_hours": item.actual_hours,
        "tags": list(item.tags),
        **_audit_values(item.audit),
    }


class SqlReminderRepository(ReminderRepository):
    """Repository for work items and reminders on PostgreSQL."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    # ==================== WRITE HELPERS ====================

    async def _compare_and_update(self, session: AsyncSession, table, entity_id: str, expected, values) -> None:
        result = await session.execute(
            update(table)
            .where(and_(table.id == entity_id, table.version == expected))
            .values(**values)
        )
        if result.rowcount == 0:
            raise ConcurrencyError(table.__name__.replace("DB", ""), entity_id, expected)

    async def _write_reminder(self, session: AsyncSession, reminder: Reminder) -> None:
        if reminder.audit.stored_version is None:
            session.add(ReminderDB(id=reminder.id, **reminder_values(reminder)))
        else:
            await self._compare_and_update(
                session, ReminderDB, reminder.id, reminder.audit.stored_version, reminder_values(reminder)
            )

    def _translate(self, e: Exception, action: str) -> Exception:
        if isinstance(e, IntegrityError):
            logger.error(f"Constraint violation while trying to {action}: {e}")
            return DatabaseConstraintError(f"Cannot {action}: duplicate or constraint violation")
        if isinstance(e, (OperationalError, InterfaceError, OSError)):
            logger.error(f"Connection failure while trying to {action}: {e}")
            return DatabaseConnectionError(f"Cannot {action}: {e}")
        logger.error(f"CRITICAL: failed to {action}: {e}", exc_info=True)
        return DatabaseOperationError(f"Failed to {action}: {e}")

    @staticmethod
    def _mark_stored(item: WorkItem) -> None:
        item.audit.stored_version = item.audit.version
        for reminder in item.reminders:
            reminder.audit.stored_version = reminder.audit.version

    # ==================== WORK ITEMS ====================

    async def add_work_item(self, item: WorkItem) -> None:
        try:
            async with self.db.session() as session:
                session.add(WorkItemDB(id=item.id, **work_item_values(item)))
                await session.flush()
                for reminder in item.reminders:
                    session.add(ReminderDB(id=reminder.id, **reminder_values(reminder)))
                await session.flush()
        except (ConcurrencyError, DatabaseConnectionError):
            raise
        except Exception as e:
            raise self._translate(e, f"create work item {item.id}") from e

        self._mark_stored(item)
        logger.info(f"Created work item {item.id} in database")

    async def get_work_item_by_id(self, work_item_id: str) -> Optional[WorkItem]:
        async with self.db.session() as session:
            result = await session.execute(
                select(WorkItemDB)
                .options(selectinload(WorkItemDB.reminders))
                .where(and_(WorkItemDB.id == work_item_id, WorkItemDB.deleted_at.is_(None)))
            )
            row = result.scalar_one_or_none()
            return work_item_from_row(row) if row else None

    async def update_work_item(self, item: WorkItem) -> None:
        try:
            async with self.db.session() as session:
                await self._compare_and_update(
                    session, WorkItemDB, item.id, item.audit.stored_version, work_item_values(item)
                )
                for reminder in item.reminders:
                    await self._write_reminder(session, reminder)
                await session.flush()
        except (ConcurrencyError, DatabaseConnectionError):
            raise
        except Exception as e:
            raise self._translate(e, f"update work item {item.id}") from e

        self._mark_stored(item)

    async def list_overdue_work_items(self, tenant_id: str, now: datetime) -> List[WorkItem]:
        async with self.db.session() as session:
            result = await session.execute(
                select(WorkItemDB)
                .options(selectinload(WorkItemDB.reminders))
                .where(and_(
                    WorkItemDB.tenant_id == tenant_id,
                    WorkItemDB.deleted_at.is_(None),
                    WorkItemDB.due_at < to_naive_utc(now),
                    WorkItemDB.state.notin_(_SETTLED_STATES),
                ))
                .order_by(WorkItemDB.due_at)
            )
            return [work_item_from_row(row) for row in result.scalars().all()]

    # ==================== REMINDERS ====================

    async def get_reminder_by_id(self, reminder_id: str) -> Optional[Reminder]:
        async with self.db.session() as session:
            result = await session.execute(
                select(ReminderDB).where(and_(ReminderDB.id == reminder_id, ReminderDB.deleted_at.is_(None)))
            )
            row = result.scalar_one_or_none()
            return reminder_from_row(row) if row else None

    async def get_reminders_for_work_item(self, work_item_id: str) -> List[Reminder]:
        async with self.db.session() as session:
            result = await session.execute(
                select(ReminderDB)
                .where(and_(ReminderDB.work_item_id == work_item_id, ReminderDB.deleted_at.is_(None)))
                .order_by(ReminderDB.fire_at)
            )
            return [reminder_from_row(row) for row in result.scalars().all()]

    async def update_reminder(self, reminder: Reminder) -> None:
        try:
            async with self.db.session() as session:
                await self._compare_and_update(
                    session, ReminderDB, reminder.id, reminder.audit.stored_version, reminder_values(reminder)
                )
        except (ConcurrencyError, DatabaseConnectionError):
            raise
        except Exception as e:
            raise self._translate(e, f"update reminder {reminder.id}") from e

        reminder.audit.stored_version = reminder.audit.version

    async def _list_scheduled(self, *conditions, limit: Optional[int] = None) -> List[Reminder]:
        query = (
            select(ReminderDB)
            .where(and_(
                ReminderDB.status == ReminderStatus.SCHEDULED.value,
                ReminderDB.deleted_at.is_(None),
                *conditions,
            ))
            .order_by(ReminderDB.fire_at)
        )
        if limit is not None:
            query = query.limit(limit)

        async with self.db.session() as session:
            result = await session.execute(query)
            return [reminder_from_row(row) for row in result.scalars().all()]

    async def list_due_reminders(self, now: datetime, limit: int) -> List[Reminder]:
        return await self._list_scheduled(ReminderDB.fire_at <= to_naive_utc(now), limit=limit)

    async def list_missed_reminders(self, oldest: datetime, newest: datetime) -> List[Reminder]:
        return await self._list_scheduled(
            ReminderDB.fire_at >= to_naive_utc(oldest),
            ReminderDB.fire_at < to_naive_utc(newest),
        )

    async def count_stale_reminders(self, before: datetime) -> int:
        async with self.db.session() as session:
            result = await session.execute(
                select(func.count(ReminderDB.id)).where(and_(
                    ReminderDB.status == ReminderStatus.SCHEDULED.value,
                    ReminderDB.deleted_at.is_(None),
                    ReminderDB.fire_at < to_naive_utc(before),
                ))
            )
            return result.scalar() or 0

    async def list_terminal_reminders_older_than(self, cutoff: datetime, limit: int) -> List[Reminder]:
        async with self.db.session() as session:
            result = await session.execute(
                select(ReminderDB)
                .where(and_(
                    ReminderDB.status.in_([s.value for s in PURGEABLE_REMINDER_STATUSES]),
                    ReminderDB.deleted_at.is_(None),
                    ReminderDB.updated_at < to_naive_utc(cutoff),
                ))
                .order_by(ReminderDB.updated_at)
                .limit(limit)
            )
            return [reminder_from_row(row) for row in result.scalars().all()]

    async def soft_delete_reminders(self, reminder_ids: Sequence[str], actor: str, now: datetime) -> int:
        if not reminder_ids:
            return 0

        stamp = to_naive_utc(now)
        try:
            async with self.db.session() as session:
                result = await session.execute(
                    update(ReminderDB)
                    .where(and_(
                        ReminderDB.id.in_(list(reminder_ids)),
                        ReminderDB.deleted_at.is_(None),
                        ReminderDB.status.in_([s.value for s in PURGEABLE_REMINDER_STATUSES]),
                    ))
                    .values(
                        deleted_at=stamp,
                        deleted_by=actor,
                        updated_at=stamp,
                        updated_by=actor,
                        version=ReminderDB.version + 1,
                    )
                )
                return result.rowcount or 0
        except Exception as e:
            raise self._translate(e, "soft-delete reminders") from e


# Singleton instance
_repository: Optional[SqlReminderRepository] = None


def get_sql_repository() -> SqlReminderRepository:
    """Get the SQL repository singleton."""
    global _repository
    if _repository is None:
        _repository = SqlReminderRepository()
    return _repository

"""
Unit tests for SqlReminderRepository.

The database session is mocked; these tests cover row conversion, the
version-guarded writes and exception translation.
"""

import pytest
from unittest.mock import AsyncMock, Mock
from datetime import datetime, timedelta

import pytz
from sqlalchemy.exc import IntegrityError, OperationalError

from taskminder.database.exceptions import (
    ConcurrencyError,
    DatabaseConnectionError,
    DatabaseConstraintError,
    DatabaseOperationError,
)
from taskminder.database.models import ReminderDB, WorkItemDB
from taskminder.database.repositories.sql import (
    SqlReminderRepository,
    reminder_from_row,
    reminder_values,
    work_item_from_row,
)
from taskminder.models import ReminderStatus, WorkItemState

NAIVE_NOW = datetime(2026, 3, 2, 9, 0)


@pytest.fixture
def mock_database():
    """Mock database with session context manager."""
    db = Mock()
    session = AsyncMock()

    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)

    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.add = Mock()

    db.session = Mock(return_value=session)

    return db, session


@pytest.fixture
def sql_repository(mock_database):
    db, session = mock_database
    return SqlReminderRepository(db=db), session


@pytest.fixture
def reminder_row():
    return ReminderDB(
        id="rem-1",
        work_item_id="item-1",
        tenant_id="tenant-1",
        fire_at=NAIVE_NOW + timedelta(hours=1),
        message="Check the numbers",
        status="scheduled",
        triggered_at=None,
        last_error=None,
        created_at=NAIVE_NOW,
        created_by="alice",
        updated_at=NAIVE_NOW,
        updated_by="alice",
        version=3,
        deleted_at=None,
        deleted_by=None,
    )


@pytest.fixture
def work_item_row(reminder_row):
    deleted = ReminderDB(
        id="rem-2",
        work_item_id="item-1",
        tenant_id="tenant-1",
        fire_at=NAIVE_NOW,
        message="Old",
        status="cancelled",
        created_at=NAIVE_NOW,
        created_by="alice",
        version=2,
        deleted_at=NAIVE_NOW,
        deleted_by="system-cleanup",
    )
    row = WorkItemDB(
        id="item-1",
        tenant_id="tenant-1",
        title="Prepare quarterly report",
        description=None,
        priority="high",
        state="in_progress",
        due_at=NAIVE_NOW + timedelta(days=7),
        completed_at=None,
        estimated_hours=10,
        actual_hours=None,
        tags=["finance"],
        created_at=NAIVE_NOW,
        created_by="alice",
        updated_at=NAIVE_NOW,
        updated_by="alice",
        version=4,
    )
    row.reminders = [reminder_row, deleted]
    return row


def result_with(scalar=None, rowcount=1):
    result = Mock()
    result.scalar_one_or_none = Mock(return_value=scalar)
    result.rowcount = rowcount
    return result


# ============================================================
# ROW CONVERSION TESTS
# ============================================================

def test_reminder_from_row_restores_utc_and_version(reminder_row):
    reminder = reminder_from_row(reminder_row)

    assert reminder.fire_at == datetime(2026, 3, 2, 10, 0, tzinfo=pytz.UTC)
    assert reminder.status == ReminderStatus.SCHEDULED
    assert reminder.audit.version == 3
    assert reminder.audit.stored_version == 3


def test_reminder_values_are_naive_utc(reminder_row):
    values = reminder_values(reminder_from_row(reminder_row))

    assert values["fire_at"] == NAIVE_NOW + timedelta(hours=1)
    assert values["fire_at"].tzinfo is None
    assert values["status"] == "scheduled"
    assert "stored_version" not in values


def test_work_item_from_row_skips_deleted_reminders(work_item_row):
    item = work_item_from_row(work_item_row)

    assert item.state == WorkItemState.IN_PROGRESS
    assert item.actual_hours == 0
    assert item.tags == ["finance"]
    assert [r.id for r in item.reminders] == ["rem-1"]


# ============================================================
# READ TESTS
# ============================================================

@pytest.mark.asyncio
async def test_get_reminder_by_id(sql_repository, reminder_row):
    repo, session = sql_repository
    session.execute.return_value = result_with(reminder_row)

    reminder = await repo.get_reminder_by_id("rem-1")

    assert reminder.id == "rem-1"
    session.execute.assert_called_once()


@pytest.mark.asyncio
async def test_get_reminder_by_id_not_found(sql_repository):
    repo, session = sql_repository
    session.execute.return_value = result_with(None)

    assert await repo.get_reminder_by_id("missing") is None


@pytest.mark.asyncio
async def test_list_due_reminders(sql_repository, reminder_row):
    repo, session = sql_repository
    result = Mock()
    result.scalars.return_value.all.return_value = [reminder_row]
    session.execute.return_value = result

    due = await repo.list_due_reminders(datetime(2026, 3, 2, 11, 0, tzinfo=pytz.UTC), limit=50)

    assert [r.id for r in due] == ["rem-1"]


@pytest.mark.asyncio
async def test_count_stale_reminders_defaults_to_zero(sql_repository):
    repo, session = sql_repository
    result = Mock()
    result.scalar.return_value = None
    session.execute.return_value = result

    assert await repo.count_stale_reminders(datetime(2026, 3, 1, tzinfo=pytz.UTC)) == 0


# ============================================================
# WRITE TESTS
# ============================================================

@pytest.mark.asyncio
async def test_update_reminder_sets_stored_version(sql_repository, reminder_row, clock):
    repo, session = sql_repository
    session.execute.return_value = result_with(rowcount=1)
    reminder = reminder_from_row(reminder_row)
    reminder.mark_triggered("system", clock())

    await repo.update_reminder(reminder)

    assert reminder.audit.stored_version == 4


@pytest.mark.asyncio
async def test_update_reminder_version_mismatch(sql_repository, reminder_row, clock):
    """Zero rows matched by UPDATE ... WHERE version = :expected."""
    repo, session = sql_repository
    session.execute.return_value = result_with(rowcount=0)
    reminder = reminder_from_row(reminder_row)
    reminder.mark_triggered("system", clock())

    with pytest.raises(ConcurrencyError) as exc_info:
        await repo.update_reminder(reminder)

    assert exc_info.value.entity == "Reminder"
    assert exc_info.value.expected_version == 3
    assert reminder.audit.stored_version == 3


@pytest.mark.asyncio
async def test_add_work_item_inserts_item_and_reminders(sql_repository, work_item, clock):
    repo, session = sql_repository
    work_item.schedule_reminder(clock() + timedelta(hours=1), "Ping", "alice", clock())

    await repo.add_work_item(work_item)

    added = [c.args[0] for c in session.add.call_args_list]
    assert isinstance(added[0], WorkItemDB)
    assert isinstance(added[1], ReminderDB)
    assert work_item.audit.stored_version == 1
    assert work_item.reminders[0].audit.stored_version == 1


@pytest.mark.asyncio
async def test_add_work_item_duplicate_is_constraint_error(sql_repository, work_item):
    repo, session = sql_repository
    session.flush.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))

    with pytest.raises(DatabaseConstraintError):
        await repo.add_work_item(work_item)

    assert work_item.audit.stored_version is None


@pytest.mark.asyncio
async def test_connection_failure_is_translated(sql_repository, reminder_row):
    repo, session = sql_repository
    session.execute.side_effect = OperationalError("UPDATE", {}, Exception("connection refused"))

    with pytest.raises(DatabaseConnectionError):
        await repo.update_reminder(reminder_from_row(reminder_row))


@pytest.mark.asyncio
async def test_unexpected_failure_is_operation_error(sql_repository, reminder_row):
    repo, session = sql_repository
    session.execute.side_effect = RuntimeError("driver bug")

    with pytest.raises(DatabaseOperationError):
        await repo.update_reminder(reminder_from_row(reminder_row))


@pytest.mark.asyncio
async def test_update_work_item_writes_new_and_existing_reminders(sql_repository, work_item_row, clock):
    repo, session = sql_repository
    session.execute.return_value = result_with(rowcount=1)
    item = work_item_from_row(work_item_row)
    new_reminder, _ = item.schedule_reminder(clock() + timedelta(hours=2), "New", "alice", clock())

    await repo.update_work_item(item)

    # One guarded UPDATE for the item, one for the existing reminder
    assert session.execute.await_count == 2
    session.add.assert_called_once()
    assert new_reminder.audit.stored_version == 1


@pytest.mark.asyncio
async def test_soft_delete_with_no_ids_skips_database(sql_repository):
    repo, session = sql_repository

    assert await repo.soft_delete_reminders([], "system-cleanup", datetime(2026, 3, 2, tzinfo=pytz.UTC)) == 0
    session.execute.assert_not_called()


@pytest.mark.asyncio
async def test_soft_delete_returns_rowcount(sql_repository):
    repo, session = sql_repository
    session.execute.return_value = result_with(rowcount=2)

    deleted = await repo.soft_delete_reminders(["a", "b", "c"], "system-cleanup", datetime(2026, 3, 2, tzinfo=pytz.UTC))

    assert deleted == 2

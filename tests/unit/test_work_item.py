"""
Unit tests for the WorkItem aggregate.
"""

from datetime import timedelta

import pytest

from taskminder.exceptions import InvalidStateError, NotFoundError, ValidationError
from taskminder.models import (
    ReminderCancelled,
    ReminderScheduled,
    ReminderStatus,
    WorkItem,
    WorkItemCreated,
    WorkItemPriority,
    WorkItemState,
    WorkItemStateChanged,
)

TENANT = "tenant-1"
USER = "alice"


class TestCreate:

    def test_create_starts_in_draft_with_event(self, clock):
        item, events = WorkItem.create(TENANT, "  Write docs  ", USER, clock(), priority=WorkItemPriority.HIGH)

        assert item.state == WorkItemState.DRAFT
        assert item.title == "Write docs"
        assert item.priority == WorkItemPriority.HIGH
        assert item.audit.version == 1
        assert item.audit.created_by == USER
        assert events == [WorkItemCreated(work_item_id=item.id, tenant_id=TENANT, title="Write docs", occurred_at=clock())]

    @pytest.mark.parametrize("title", ["", "   ", None, "x" * 201])
    def test_create_rejects_bad_titles(self, clock, title):
        with pytest.raises(ValidationError):
            WorkItem.create(TENANT, title, USER, clock())

    def test_create_rejects_past_due_date(self, clock):
        with pytest.raises(ValidationError, match="Due date"):
            WorkItem.create(TENANT, "Task", USER, clock(), due_at=clock() - timedelta(days=1))

    def test_create_rejects_out_of_range_estimate(self, clock):
        with pytest.raises(ValidationError):
            WorkItem.create(TENANT, "Task", USER, clock(), estimated_hours=1001)

    def test_create_rejects_long_description(self, clock):
        with pytest.raises(ValidationError):
            WorkItem.create(TENANT, "Task", USER, clock(), description="d" * 2001)

    def test_create_deduplicates_tags_case_insensitively(self, clock):
        item, _ = WorkItem.create(TENANT, "Task", USER, clock(), tags=["Urgent", "urgent", "backend"])

        assert item.tags == ["Urgent", "backend"]

    def test_naive_due_date_is_treated_as_utc(self, clock):
        naive = (clock() + timedelta(days=1)).replace(tzinfo=None)

        item, _ = WorkItem.create(TENANT, "Task", USER, clock(), due_at=naive)

        assert item.due_at == clock() + timedelta(days=1)
        assert item.due_at.tzinfo is not None


class TestStateChanges:

    def test_change_state_bumps_version_and_returns_event(self, work_item, clock):
        clock.advance(minutes=5)

        events = work_item.change_state(WorkItemState.IN_PROGRESS, "bob", clock())

        assert work_item.state == WorkItemState.IN_PROGRESS
        assert work_item.audit.version == 2
        assert work_item.audit.updated_by == "bob"
        assert work_item.audit.updated_at == clock()
        assert events == [WorkItemStateChanged(
            work_item_id=work_item.id,
            previous_state=WorkItemState.DRAFT,
            new_state=WorkItemState.IN_PROGRESS,
            occurred_at=clock(),
        )]

    def test_illegal_transition_raises_state_error(self, work_item, clock):
        with pytest.raises(InvalidStateError) as exc_info:
            work_item.change_state(WorkItemState.COMPLETED, USER, clock())

        assert exc_info.value.current == WorkItemState.DRAFT
        assert exc_info.value.target == WorkItemState.COMPLETED
        assert "'draft'" in str(exc_info.value)
        assert work_item.state == WorkItemState.DRAFT
        assert work_item.audit.version == 1

    def test_complete_sets_timestamp_and_actual_hours(self, in_progress_item, clock):
        clock.advance(hours=3)

        in_progress_item.change_state(WorkItemState.COMPLETED, USER, clock(), actual_hours=12.5)

        assert in_progress_item.completed_at == clock()
        assert in_progress_item.actual_hours == 12.5

    def test_complete_rejects_invalid_actual_hours(self, in_progress_item, clock):
        with pytest.raises(ValidationError):
            in_progress_item.change_state(WorkItemState.COMPLETED, USER, clock(), actual_hours=-1)

        assert in_progress_item.state == WorkItemState.IN_PROGRESS

    def test_reopen_clears_completion_timestamp(self, in_progress_item, clock):
        in_progress_item.change_state(WorkItemState.COMPLETED, USER, clock())

        in_progress_item.change_state(WorkItemState.DRAFT, USER, clock())

        assert in_progress_item.completed_at is None

    @pytest.mark.parametrize("target", [WorkItemState.COMPLETED, WorkItemState.ARCHIVED])
    def test_cascade_cancels_only_scheduled_reminders(self, in_progress_item, clock, target):
        now = clock()
        scheduled_a, _ = in_progress_item.schedule_reminder(now + timedelta(hours=1), "a", USER, now)
        scheduled_b, _ = in_progress_item.schedule_reminder(now + timedelta(hours=2), "b", USER, now)
        triggered, _ = in_progress_item.schedule_reminder(now + timedelta(hours=3), "c", USER, now)
        failed, _ = in_progress_item.schedule_reminder(now + timedelta(hours=4), "d", USER, now)
        triggered.mark_triggered("system", now)
        failed.mark_failed("boom", "system", now)

        events = in_progress_item.change_state(target, USER, now)

        assert scheduled_a.status == ReminderStatus.CANCELLED
        assert scheduled_b.status == ReminderStatus.CANCELLED
        assert triggered.status == ReminderStatus.TRIGGERED
        assert failed.status == ReminderStatus.FAILED
        assert failed.last_error == "boom"
        cancelled_ids = {e.reminder_id for e in events if isinstance(e, ReminderCancelled)}
        assert cancelled_ids == {scheduled_a.id, scheduled_b.id}
        assert all(e.reason == f"work item {target.value}" for e in events if isinstance(e, ReminderCancelled))

    def test_on_hold_does_not_cancel_reminders(self, in_progress_item, clock):
        reminder, _ = in_progress_item.schedule_reminder(clock() + timedelta(hours=1), "a", USER, clock())

        in_progress_item.change_state(WorkItemState.ON_HOLD, USER, clock())

        assert reminder.status == ReminderStatus.SCHEDULED


class TestFieldUpdates:

    def test_update_details_changes_only_given_fields(self, work_item, clock):
        work_item.update_details(USER, clock(), title="New title", priority=WorkItemPriority.CRITICAL)

        assert work_item.title == "New title"
        assert work_item.priority == WorkItemPriority.CRITICAL
        assert work_item.estimated_hours == 10
        assert work_item.audit.version == 2

    def test_update_details_is_all_or_nothing(self, work_item, clock):
        with pytest.raises(ValidationError):
            work_item.update_details(USER, clock(), title="Fine", estimated_hours=5000)

        assert work_item.title == "Prepare quarterly report"
        assert work_item.audit.version == 1

    def test_clear_due_date(self, work_item, clock):
        work_item.update_details(USER, clock(), clear_due_date=True)

        assert work_item.due_at is None

    def test_archived_item_cannot_be_modified(self, work_item, clock):
        work_item.change_state(WorkItemState.ARCHIVED, USER, clock())

        with pytest.raises(InvalidStateError):
            work_item.update_details(USER, clock(), title="Nope")
        with pytest.raises(InvalidStateError):
            work_item.add_tag("x", USER, clock())
        with pytest.raises(InvalidStateError):
            work_item.remove_tag("x", USER, clock())

    def test_add_tag_is_case_insensitive_no_op(self, work_item, clock):
        work_item.add_tag("Backend", USER, clock())
        version = work_item.audit.version

        work_item.add_tag("BACKEND", USER, clock())

        assert work_item.tags == ["Backend"]
        assert work_item.audit.version == version

    def test_add_tag_respects_cap(self, work_item, clock):
        for i in range(3):
            work_item.add_tag(f"t{i}", USER, clock(), max_tags=3)

        with pytest.raises(ValidationError, match="3 tags"):
            work_item.add_tag("one-more", USER, clock(), max_tags=3)

    def test_add_tag_rejects_long_tag(self, work_item, clock):
        with pytest.raises(ValidationError):
            work_item.add_tag("x" * 51, USER, clock())

    def test_remove_tag_matches_any_case(self, work_item, clock):
        work_item.add_tag("Frontend", USER, clock())

        work_item.remove_tag("frontend", USER, clock())

        assert work_item.tags == []


class TestQueries:

    def test_is_overdue(self, work_item, clock):
        assert not work_item.is_overdue(clock())
        assert work_item.is_overdue(work_item.due_at + timedelta(seconds=1))

    def test_completed_item_is_never_overdue(self, in_progress_item, clock):
        in_progress_item.change_state(WorkItemState.COMPLETED, USER, clock())

        assert not in_progress_item.is_overdue(in_progress_item.due_at + timedelta(days=1))

    def test_progress_without_estimate_is_zero(self, work_item):
        work_item.estimated_hours = 0
        work_item.actual_hours = 5

        assert work_item.progress_percentage() == 0

    def test_progress_is_capped_and_floored(self, in_progress_item):
        assert in_progress_item.progress_percentage() == 1

        in_progress_item.actual_hours = 4
        assert in_progress_item.progress_percentage() == 40

        in_progress_item.actual_hours = 25
        assert in_progress_item.progress_percentage() == 100

    def test_progress_of_completed_item_is_full(self, in_progress_item, clock):
        in_progress_item.change_state(WorkItemState.COMPLETED, USER, clock(), actual_hours=2)

        assert in_progress_item.progress_percentage() == 100

    def test_get_reminder_raises_for_unknown_id(self, work_item):
        with pytest.raises(NotFoundError):
            work_item.get_reminder("missing")


class TestReminderScheduling:

    def test_schedule_reminder_appends_and_emits_event(self, work_item, clock):
        fire_at = clock() + timedelta(days=2)

        reminder, events = work_item.schedule_reminder(fire_at, "Draft the intro", USER, clock())

        assert work_item.reminders == [reminder]
        assert reminder.status == ReminderStatus.SCHEDULED
        assert reminder.tenant_id == work_item.tenant_id
        assert events == [ReminderScheduled(
            reminder_id=reminder.id, work_item_id=work_item.id, fire_at=fire_at, occurred_at=clock()
        )]

    def test_schedule_reminder_rejects_sixth(self, work_item, clock):
        for i in range(5):
            work_item.schedule_reminder(clock() + timedelta(hours=i + 1), f"r{i}", USER, clock())

        with pytest.raises(ValidationError, match="maximum"):
            work_item.schedule_reminder(clock() + timedelta(hours=8), "r5", USER, clock())

    def test_reschedule_failed_reminder_within_cap(self, work_item, clock):
        reminder, _ = work_item.schedule_reminder(clock() + timedelta(hours=1), "r", USER, clock())
        reminder.mark_failed("bounced", "system", clock())

        work_item.reschedule_reminder(reminder.id, clock() + timedelta(hours=5), USER, clock())

        assert reminder.status == ReminderStatus.SCHEDULED
        assert reminder.last_error is None

    def test_reschedule_triggered_reminder_is_rejected(self, work_item, clock):
        reminder, _ = work_item.schedule_reminder(clock() + timedelta(hours=1), "r", USER, clock())
        reminder.mark_triggered("system", clock())

        with pytest.raises(InvalidStateError):
            work_item.reschedule_reminder(reminder.id, clock() + timedelta(hours=5), USER, clock())

    def test_reschedule_cannot_pass_due_date(self, work_item, clock):
        reminder, _ = work_item.schedule_reminder(clock() + timedelta(hours=1), "r", USER, clock())

        with pytest.raises(ValidationError):
            work_item.reschedule_reminder(reminder.id, work_item.due_at + timedelta(hours=1), USER, clock())

    def test_cancel_reminder(self, work_item, clock):
        reminder, _ = work_item.schedule_reminder(clock() + timedelta(hours=1), "r", USER, clock())

        events = work_item.cancel_reminder(reminder.id, USER, clock())

        assert reminder.status == ReminderStatus.CANCELLED
        assert isinstance(events[0], ReminderCancelled)

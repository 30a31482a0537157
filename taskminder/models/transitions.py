"""
Transition policy for work items and reminder scheduling eligibility.

Pure functions only: no I/O, no mutation. Entities and the dispatcher ask
these before changing anything.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Dict, FrozenSet, Optional, Tuple

from .enums import (
    CLOSED_WORK_ITEM_STATES,
    ReminderStatus,
    WorkItemState,
)

if TYPE_CHECKING:
    from .work_item import WorkItem

DEFAULT_MAX_ACTIVE_REMINDERS = 5

ALLOWED_TRANSITIONS: Dict[WorkItemState, FrozenSet[WorkItemState]] = {
    WorkItemState.DRAFT: frozenset({
        WorkItemState.IN_PROGRESS,
        WorkItemState.ON_HOLD,
        WorkItemState.CANCELLED,
        WorkItemState.ARCHIVED,
    }),
    WorkItemState.IN_PROGRESS: frozenset({
        WorkItemState.COMPLETED,
        WorkItemState.ON_HOLD,
        WorkItemState.CANCELLED,
        WorkItemState.ARCHIVED,
        WorkItemState.DRAFT,        # Reopen
    }),
    WorkItemState.COMPLETED: frozenset({
        WorkItemState.ARCHIVED,
        WorkItemState.DRAFT,        # Reopen
        WorkItemState.IN_PROGRESS,  # Restart
    }),
    WorkItemState.ON_HOLD: frozenset({
        WorkItemState.IN_PROGRESS,
        WorkItemState.CANCELLED,
        WorkItemState.ARCHIVED,
    }),
    WorkItemState.CANCELLED: frozenset({
        WorkItemState.DRAFT,
        WorkItemState.ARCHIVED,
    }),
    WorkItemState.ARCHIVED: frozenset(),
}


def can_transition(current: WorkItemState, target: WorkItemState) -> bool:
    """Check whether `current -> target` is listed in the transition table."""
    if current == WorkItemState.ARCHIVED:
        return False
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def validate_transition(
    current: WorkItemState,
    target: WorkItemState
) -> Tuple[bool, Optional[str]]:
    """
    Validate that a work item state transition is allowed.

    Args:
        current: Current state
        target: Requested state

    Returns:
        Tuple of (is_valid, error_message)
    """
    if can_transition(current, target):
        return True, None
    return False, f"Cannot transition work item from '{current.value}' to '{target.value}'"


def count_active_reminders(work_item: "WorkItem", exclude_reminder_id: Optional[str] = None) -> int:
    """Count reminders still in Scheduled status, optionally ignoring one."""
    return sum(
        1 for r in work_item.reminders
        if r.status == ReminderStatus.SCHEDULED and r.id != exclude_reminder_id
    )


def check_schedule_reminder(
    work_item: "WorkItem",
    fire_at: datetime,
    now: datetime,
    max_active: int = DEFAULT_MAX_ACTIVE_REMINDERS,
    exclude_reminder_id: Optional[str] = None,
) -> Optional[str]:
    """
    Return why a reminder at `fire_at` cannot be scheduled, or None if it can.

    `exclude_reminder_id` lets a reschedule of an already Scheduled reminder
    skip counting itself against the cap.
    """
    if work_item.state in CLOSED_WORK_ITEM_STATES:
        return f"Cannot schedule reminders for a {work_item.state.value} work item"

    if fire_at <= now:
        return "Reminder time must be in the future"

    if work_item.due_at is not None and fire_at > work_item.due_at:
        return "Reminder time must not be after the work item's due date"

    if count_active_reminders(work_item, exclude_reminder_id) >= max_active:
        return f"Work item already has the maximum of {max_active} scheduled reminders"

    return None


def can_schedule_reminder(
    work_item: "WorkItem",
    fire_at: datetime,
    now: datetime,
    max_active: int = DEFAULT_MAX_ACTIVE_REMINDERS,
) -> bool:
    """Boolean form of check_schedule_reminder."""
    return check_schedule_reminder(work_item, fire_at, now, max_active) is None


def can_trigger_reminder(work_item: "WorkItem") -> bool:
    """Whether the owning work item still permits its reminders to fire."""
    return work_item.state not in CLOSED_WORK_ITEM_STATES

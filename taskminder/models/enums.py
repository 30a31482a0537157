"""Enumerations shared by work items, reminders and the persistence layer."""

from enum import Enum


class WorkItemPriority(str, Enum):
    """Work item priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class WorkItemState(str, Enum):
    """Work item lifecycle states."""
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"  # Absorbing, no outgoing transitions


class ReminderStatus(str, Enum):
    """Reminder lifecycle states."""
    SCHEDULED = "scheduled"
    TRIGGERED = "triggered"   # Terminal success
    FAILED = "failed"         # Terminal until rescheduled
    CANCELLED = "cancelled"   # Terminal until rescheduled


# Statuses eligible for retention purging
PURGEABLE_REMINDER_STATUSES = frozenset({ReminderStatus.TRIGGERED, ReminderStatus.CANCELLED})

# Work item states in which reminders may no longer be created or fire
CLOSED_WORK_ITEM_STATES = frozenset({WorkItemState.ARCHIVED, WorkItemState.CANCELLED})

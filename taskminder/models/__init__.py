"""Domain models for work items and reminders."""

from .audit import AuditInfo, mark_created, mark_updated, mark_deleted
from .enums import (
    WorkItemPriority,
    WorkItemState,
    ReminderStatus,
    PURGEABLE_REMINDER_STATUSES,
    CLOSED_WORK_ITEM_STATES,
)
from .events import (
    DomainEvent,
    EventHandler,
    publish_events,
    WorkItemCreated,
    WorkItemStateChanged,
    ReminderScheduled,
    ReminderRescheduled,
    ReminderTriggered,
    ReminderFailed,
    ReminderCancelled,
)
from .reminder import Reminder
from .work_item import WorkItem

__all__ = [
    "AuditInfo",
    "mark_created",
    "mark_updated",
    "mark_deleted",
    "WorkItemPriority",
    "WorkItemState",
    "ReminderStatus",
    "PURGEABLE_REMINDER_STATUSES",
    "CLOSED_WORK_ITEM_STATES",
    "DomainEvent",
    "EventHandler",
    "publish_events",
    "WorkItemCreated",
    "WorkItemStateChanged",
    "ReminderScheduled",
    "ReminderRescheduled",
    "ReminderTriggered",
    "ReminderFailed",
    "ReminderCancelled",
    "Reminder",
    "WorkItem",
]

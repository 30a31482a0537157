"""
WorkItem aggregate: task data, its state machine and its reminders.

All mutations go through the methods below. Each one stamps the audit info
(bumping the version) and returns the domain events it produced.
"""

from datetime import datetime
from typing import List, Optional, Tuple
import uuid

from pydantic import BaseModel, Field, field_validator

from ..exceptions import InvalidStateError, NotFoundError, ValidationError
from ..utils.datetime_utils import ensure_utc
from .transitions import (
    DEFAULT_MAX_ACTIVE_REMINDERS,
    check_schedule_reminder,
    validate_transition,
)
from .audit import AuditInfo, mark_created, mark_updated
from .enums import ReminderStatus, WorkItemPriority, WorkItemState
from .events import DomainEvent, ReminderScheduled, WorkItemCreated, WorkItemStateChanged
from .reminder import Reminder

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000
MAX_TAG_LENGTH = 50
DEFAULT_MAX_TAGS = 10
MAX_HOURS = 1000

# States in which a work item is no longer considered overdue
_SETTLED_STATES = {WorkItemState.COMPLETED, WorkItemState.ARCHIVED, WorkItemState.CANCELLED}


def _clean_title(title: Optional[str]) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError("Title is required")
    if len(cleaned) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title must not exceed {MAX_TITLE_LENGTH} characters")
    return cleaned


def _clean_description(description: Optional[str]) -> Optional[str]:
    if description is not None and len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"Description must not exceed {MAX_DESCRIPTION_LENGTH} characters")
    return description


def _check_hours(value: float, label: str) -> float:
    if value < 0 or value > MAX_HOURS:
        raise ValidationError(f"{label} must be between 0 and {MAX_HOURS}")
    return value


def _clean_tag(tag: Optional[str]) -> str:
    cleaned = (tag or "").strip()
    if not cleaned:
        raise ValidationError("Tag cannot be empty")
    if len(cleaned) > MAX_TAG_LENGTH:
        raise ValidationError(f"Tag must not exceed {MAX_TAG_LENGTH} characters")
    return cleaned


class WorkItem(BaseModel):
    """Task-like aggregate root owning zero or more reminders."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), frozen=True)
    tenant_id: str = Field(frozen=True)

    title: str
    description: Optional[str] = None
    priority: WorkItemPriority = WorkItemPriority.MEDIUM
    state: WorkItemState = WorkItemState.DRAFT

    due_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    estimated_hours: float = 0
    actual_hours: float = 0

    tags: List[str] = Field(default_factory=list)
    reminders: List[Reminder] = Field(default_factory=list)

    audit: AuditInfo

    @field_validator("due_at", "completed_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @classmethod
    def create(
        cls,
        tenant_id: str,
        title: str,
        actor: str,
        now: datetime,
        description: Optional[str] = None,
        priority: WorkItemPriority = WorkItemPriority.MEDIUM,
        due_at: Optional[datetime] = None,
        estimated_hours: float = 0,
        tags: Optional[List[str]] = None,
        max_tags: int = DEFAULT_MAX_TAGS,
    ) -> Tuple["WorkItem", List[DomainEvent]]:
        """Create a Draft work item."""
        if not tenant_id:
            raise ValidationError("Tenant id is required")

        due_at = ensure_utc(due_at)
        if due_at is not None and due_at <= now:
            raise ValidationError("Due date must be in the future")

        item = cls(
            tenant_id=tenant_id,
            title=_clean_title(title),
            description=_clean_description(description),
            priority=priority,
            due_at=due_at,
            estimated_hours=_check_hours(estimated_hours, "Estimated hours"),
            audit=mark_created(actor, now),
        )
        for tag in tags or []:
            item._insert_tag(tag, max_tags)

        events: List[DomainEvent] = [WorkItemCreated(
            work_item_id=item.id,
            tenant_id=tenant_id,
            title=item.title,
            occurred_at=now,
        )]
        return item, events

    # ==================== QUERIES ====================

    def is_overdue(self, now: datetime) -> bool:
        return self.due_at is not None and self.due_at < now and self.state not in _SETTLED_STATES

    def progress_percentage(self) -> int:
        """Progress from actual vs estimated hours, capped at 100."""
        if self.estimated_hours <= 0:
            return 0
        if self.state == WorkItemState.COMPLETED:
            return 100

        percentage = int(min(100, (self.actual_hours * 100.0) / self.estimated_hours))

        # Started work always shows some progress
        if self.state == WorkItemState.IN_PROGRESS and percentage == 0:
            return 1
        return percentage

    def active_reminders(self) -> List[Reminder]:
        return [r for r in self.reminders if r.status == ReminderStatus.SCHEDULED]

    def get_reminder(self, reminder_id: str) -> Reminder:
        for reminder in self.reminders:
            if reminder.id == reminder_id:
                return reminder
        raise NotFoundError(f"Reminder {reminder_id} not found on work item {self.id}")

    # ==================== FIELD UPDATES ====================

    def _ensure_mutable(self) -> None:
        if self.state == WorkItemState.ARCHIVED:
            raise InvalidStateError("Cannot modify an archived work item", current=self.state)

    def update_details(
        self,
        actor: str,
        now: datetime,
        title: Optional[str] = None,
        description: Optional[str] = None,
        priority: Optional[WorkItemPriority] = None,
        due_at: Optional[datetime] = None,
        estimated_hours: Optional[float] = None,
        clear_due_date: bool = False,
    ) -> List[DomainEvent]:
        """Update basic fields. Only the provided values change."""
        self._ensure_mutable()

        new_title = _clean_title(title) if title is not None else self.title
        new_description = _clean_description(description) if description is not None else self.description
        new_hours = (
            _check_hours(estimated_hours, "Estimated hours")
            if estimated_hours is not None else self.estimated_hours
        )
        new_due = self.due_at
        if clear_due_date:
            new_due = None
        elif due_at is not None:
            new_due = ensure_utc(due_at)
            if new_due <= now:
                raise ValidationError("Due date must be in the future")

        self.title = new_title
        self.description = new_description
        self.estimated_hours = new_hours
        self.due_at = new_due
        if priority is not None:
            self.priority = priority

        mark_updated(self.audit, actor, now)
        return []

    def _insert_tag(self, tag: str, max_tags: int) -> bool:
        cleaned = _clean_tag(tag)
        if any(existing.lower() == cleaned.lower() for existing in self.tags):
            return False
        if len(self.tags) >= max_tags:
            raise ValidationError(f"Cannot have more than {max_tags} tags")
        self.tags.append(cleaned)
        return True

    def add_tag(self, tag: str, actor: str, now: datetime, max_tags: int = DEFAULT_MAX_TAGS) -> List[DomainEvent]:
        """Add a tag. Adding a tag already present (any case) is a no-op."""
        self._ensure_mutable()
        if self._insert_tag(tag, max_tags):
            mark_updated(self.audit, actor, now)
        return []

    def remove_tag(self, tag: str, actor: str, now: datetime) -> List[DomainEvent]:
        """Remove every case-insensitive match of `tag`."""
        self._ensure_mutable()
        wanted = (tag or "").strip().lower()
        remaining = [t for t in self.tags if t.lower() != wanted]
        if len(remaining) != len(self.tags):
            self.tags = remaining
            mark_updated(self.audit, actor, now)
        return []

    # ==================== STATE MACHINE ====================

    def change_state(
        self,
        target: WorkItemState,
        actor: str,
        now: datetime,
        actual_hours: Optional[float] = None,
    ) -> List[DomainEvent]:
        """
        Move to `target`, applying the transition's side effects.

        Completed and Archived cancel every Scheduled reminder; entering Draft
        clears the completion timestamp.
        """
        allowed, error = validate_transition(self.state, target)
        if not allowed:
            raise InvalidStateError(error, current=self.state, target=target)

        if actual_hours is not None:
            _check_hours(actual_hours, "Actual hours")

        previous = self.state
        self.state = target

        if target == WorkItemState.COMPLETED:
            self.completed_at = now
            if actual_hours is not None:
                self.actual_hours = actual_hours
        elif target == WorkItemState.DRAFT:
            self.completed_at = None

        mark_updated(self.audit, actor, now)
        events: List[DomainEvent] = [WorkItemStateChanged(
            work_item_id=self.id,
            previous_state=previous,
            new_state=target,
            occurred_at=now,
        )]

        if target in (WorkItemState.COMPLETED, WorkItemState.ARCHIVED):
            events.extend(self._cancel_active_reminders(actor, now, reason=f"work item {target.value}"))

        return events

    def _cancel_active_reminders(self, actor: str, now: datetime, reason: str) -> List[DomainEvent]:
        events: List[DomainEvent] = []
        for reminder in self.active_reminders():
            events.extend(reminder.cancel(actor, now, reason=reason))
        return events

    # ==================== REMINDERS ====================

    def schedule_reminder(
        self,
        fire_at: datetime,
        message: str,
        actor: str,
        now: datetime,
        max_active: int = DEFAULT_MAX_ACTIVE_REMINDERS,
    ) -> Tuple[Reminder, List[DomainEvent]]:
        """Attach a new Scheduled reminder after the eligibility check."""
        fire_at = ensure_utc(fire_at)
        rejection = check_schedule_reminder(self, fire_at, now, max_active)
        if rejection:
            raise ValidationError(rejection)

        reminder = Reminder.create(
            work_item_id=self.id,
            tenant_id=self.tenant_id,
            fire_at=fire_at,
            message=message,
            actor=actor,
            now=now,
        )
        self.reminders.append(reminder)
        mark_updated(self.audit, actor, now)
        return reminder, [ReminderScheduled(
            reminder_id=reminder.id,
            work_item_id=self.id,
            fire_at=fire_at,
            occurred_at=now,
        )]

    def reschedule_reminder(
        self,
        reminder_id: str,
        fire_at: datetime,
        actor: str,
        now: datetime,
        max_active: int = DEFAULT_MAX_ACTIVE_REMINDERS,
    ) -> List[DomainEvent]:
        """Return a reminder to Scheduled at `fire_at` (same eligibility rules as scheduling)."""
        reminder = self.get_reminder(reminder_id)
        if reminder.status == ReminderStatus.TRIGGERED:
            raise InvalidStateError.for_transition("reminder", reminder.status, ReminderStatus.SCHEDULED)

        fire_at = ensure_utc(fire_at)
        rejection = check_schedule_reminder(self, fire_at, now, max_active, exclude_reminder_id=reminder.id)
        if rejection:
            raise ValidationError(rejection)

        events = reminder.reschedule(fire_at, actor, now)
        # The reminder cap is guarded by the item version
        mark_updated(self.audit, actor, now)
        return events

    def cancel_reminder(self, reminder_id: str, actor: str, now: datetime) -> List[DomainEvent]:
        reminder = self.get_reminder(reminder_id)
        events = reminder.cancel(actor, now, reason="cancelled by user")
        mark_updated(self.audit, actor, now)
        return events

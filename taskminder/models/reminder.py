"""Reminder entity: a time-triggered notification owned by one work item."""

from datetime import datetime
from typing import List, Optional
import uuid

from pydantic import BaseModel, Field, field_validator

from ..exceptions import InvalidStateError, ValidationError
from ..utils.datetime_utils import ensure_utc
from .audit import AuditInfo, mark_created, mark_updated
from .enums import ReminderStatus
from .events import (
    DomainEvent,
    ReminderCancelled,
    ReminderFailed,
    ReminderRescheduled,
    ReminderTriggered,
)

MAX_MESSAGE_LENGTH = 500
MAX_ERROR_LENGTH = 2000


def validate_message(message: Optional[str]) -> str:
    """Trim and validate reminder message text."""
    cleaned = (message or "").strip()
    if not cleaned:
        raise ValidationError("Reminder message is required")
    if len(cleaned) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Reminder message must not exceed {MAX_MESSAGE_LENGTH} characters")
    return cleaned


class Reminder(BaseModel):
    """Scheduled notification for a work item."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), frozen=True)
    work_item_id: str = Field(frozen=True)
    tenant_id: str = Field(frozen=True)

    fire_at: datetime
    message: str
    status: ReminderStatus = ReminderStatus.SCHEDULED
    triggered_at: Optional[datetime] = None
    last_error: Optional[str] = None

    audit: AuditInfo

    @field_validator("fire_at", "triggered_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @classmethod
    def create(
        cls,
        work_item_id: str,
        tenant_id: str,
        fire_at: datetime,
        message: str,
        actor: str,
        now: datetime,
    ) -> "Reminder":
        """Create a Scheduled reminder. Fire time must be strictly in the future."""
        fire_at = ensure_utc(fire_at)
        if fire_at <= now:
            raise ValidationError("Reminder time must be in the future")
        return cls(
            work_item_id=work_item_id,
            tenant_id=tenant_id,
            fire_at=fire_at,
            message=validate_message(message),
            audit=mark_created(actor, now),
        )

    # ==================== QUERIES ====================

    def is_due(self, now: datetime) -> bool:
        """Scheduled and fire time has been reached."""
        return self.status == ReminderStatus.SCHEDULED and self.fire_at <= now

    def is_pending(self, now: datetime) -> bool:
        """Scheduled and fire time still ahead."""
        return self.status == ReminderStatus.SCHEDULED and self.fire_at > now

    @property
    def is_terminal(self) -> bool:
        return self.status != ReminderStatus.SCHEDULED

    # ==================== TRANSITIONS ====================

    def _require(self, expected: ReminderStatus, target: ReminderStatus) -> None:
        if self.status != expected:
            raise InvalidStateError.for_transition("reminder", self.status, target)

    def mark_triggered(self, actor: str, now: datetime) -> List[DomainEvent]:
        """Scheduled -> Triggered."""
        self._require(ReminderStatus.SCHEDULED, ReminderStatus.TRIGGERED)
        self.status = ReminderStatus.TRIGGERED
        self.triggered_at = now
        self.last_error = None
        mark_updated(self.audit, actor, now)
        return [ReminderTriggered(reminder_id=self.id, work_item_id=self.work_item_id, occurred_at=now)]

    def mark_failed(self, error: str, actor: str, now: datetime) -> List[DomainEvent]:
        """Scheduled -> Failed, keeping the error text."""
        self._require(ReminderStatus.SCHEDULED, ReminderStatus.FAILED)
        error = (error or "Unknown error")[:MAX_ERROR_LENGTH]
        self.status = ReminderStatus.FAILED
        self.last_error = error
        mark_updated(self.audit, actor, now)
        return [ReminderFailed(reminder_id=self.id, work_item_id=self.work_item_id, error=error, occurred_at=now)]

    def cancel(self, actor: str, now: datetime, reason: Optional[str] = None) -> List[DomainEvent]:
        """Scheduled -> Cancelled."""
        self._require(ReminderStatus.SCHEDULED, ReminderStatus.CANCELLED)
        self.status = ReminderStatus.CANCELLED
        mark_updated(self.audit, actor, now)
        return [ReminderCancelled(
            reminder_id=self.id,
            work_item_id=self.work_item_id,
            occurred_at=now,
            reason=reason,
        )]

    def reschedule(self, fire_at: datetime, actor: str, now: datetime) -> List[DomainEvent]:
        """
        Failed/Cancelled -> Scheduled with a new future fire time.

        A reminder that is still Scheduled may also be moved to a new time.
        Triggered reminders are final.
        """
        if self.status == ReminderStatus.TRIGGERED:
            raise InvalidStateError.for_transition("reminder", self.status, ReminderStatus.SCHEDULED)

        fire_at = ensure_utc(fire_at)
        if fire_at <= now:
            raise ValidationError("Reminder time must be in the future")

        self.status = ReminderStatus.SCHEDULED
        self.fire_at = fire_at
        self.last_error = None
        self.triggered_at = None
        mark_updated(self.audit, actor, now)
        return [ReminderRescheduled(
            reminder_id=self.id,
            work_item_id=self.work_item_id,
            fire_at=fire_at,
            occurred_at=now,
        )]

    def update_message(self, message: str, actor: str, now: datetime) -> List[DomainEvent]:
        """Change the text of a reminder that has not fired yet."""
        if self.status != ReminderStatus.SCHEDULED:
            raise InvalidStateError(
                f"Cannot update a {self.status.value} reminder",
                current=self.status,
            )
        self.message = validate_message(message)
        mark_updated(self.audit, actor, now)
        return []

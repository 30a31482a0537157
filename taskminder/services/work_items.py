"""
Work item and reminder operations exposed to callers (API layer, operators).

Every operation:
- checks the work item belongs to the caller's tenant
- applies the change through the aggregate and commits it in one repository call
- publishes the collected domain events only after the commit succeeded
- returns an OperationResult; domain errors are never raised to the caller
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from config import Settings, settings as default_settings
from ..database.exceptions import ConcurrencyError, EntityNotFoundError
from ..database.repositories.base import ReminderRepository
from ..exceptions import AccessDeniedError, DomainError, InvalidStateError, NotFoundError
from ..models import (
    DomainEvent,
    EventHandler,
    ReminderCancelled,
    ReminderStatus,
    WorkItem,
    WorkItemPriority,
    WorkItemState,
    publish_events,
)
from ..monitoring.prometheus import reminders_cascade_cancelled_total, work_item_transitions_total
from ..scheduler.dispatcher import DispatchOutcome, ReminderDispatcher
from ..utils.datetime_utils import Clock, utc_now

logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    """Outcome of a service operation."""

    success: bool
    value: Any = None
    error: Optional[str] = None
    error_kind: Optional[str] = None  # validation, state, not_found, access_denied, concurrency, delivery, unavailable

    @classmethod
    def ok(cls, value: Any = None) -> "OperationResult":
        return cls(success=True, value=value)

    @classmethod
    def failure(cls, error: str, error_kind: str) -> "OperationResult":
        return cls(success=False, error=error, error_kind=error_kind)

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization."""
        return {
            "success": self.success,
            "value": self.value,
            "error": self.error,
            "error_kind": self.error_kind,
        }


# Unit of work returning its value and the events to publish after commit
Work = Callable[[], Awaitable[Tuple[Any, List[DomainEvent]]]]


class WorkItemService:
    """Operations on work items and their reminders."""

    def __init__(
        self,
        repository: ReminderRepository,
        dispatcher: ReminderDispatcher,
        clock: Clock = utc_now,
        settings: Optional[Settings] = None,
        event_handler: Optional[EventHandler] = None,
    ):
        self.repository = repository
        self.dispatcher = dispatcher
        self.clock = clock
        self.settings = settings or default_settings
        self.event_handler = event_handler

    # ==================== PLUMBING ====================

    async def _execute(self, operation: str, work: Work) -> OperationResult:
        try:
            value, events = await work()
        except DomainError as e:
            logger.info(f"{operation} rejected ({e.kind}): {e}")
            return OperationResult.failure(str(e), e.kind)
        except ConcurrencyError as e:
            logger.warning(f"{operation} lost a concurrent update: {e}")
            return OperationResult.failure(
                "The work item was modified concurrently, reload and try again", "concurrency"
            )
        except EntityNotFoundError as e:
            logger.warning(f"{operation} target disappeared: {e}")
            return OperationResult.failure(str(e), "not_found")

        await publish_events(self.event_handler, events)
        return OperationResult.ok(value)

    async def _load_owned(self, tenant_id: str, work_item_id: str) -> WorkItem:
        item = await self.repository.get_work_item_by_id(work_item_id)
        if item is None:
            raise NotFoundError(f"Work item {work_item_id} not found")
        if item.tenant_id != tenant_id:
            logger.warning(f"Tenant {tenant_id} tried to access work item {work_item_id}")
            raise AccessDeniedError("Access denied")
        return item

    async def _load_owned_reminder(self, tenant_id: str, reminder_id: str) -> WorkItem:
        reminder = await self.repository.get_reminder_by_id(reminder_id)
        if reminder is None:
            raise NotFoundError(f"Reminder {reminder_id} not found")
        if reminder.tenant_id != tenant_id:
            logger.warning(f"Tenant {tenant_id} tried to access reminder {reminder_id}")
            raise AccessDeniedError("Access denied")
        return await self._load_owned(tenant_id, reminder.work_item_id)

    # ==================== WORK ITEMS ====================

    async def create_work_item(
        self,
        tenant_id: str,
        actor: str,
        title: str,
        description: Optional[str] = None,
        priority: WorkItemPriority = WorkItemPriority.MEDIUM,
        due_at: Optional[datetime] = None,
        estimated_hours: float = 0,
        tags: Optional[List[str]] = None,
    ) -> OperationResult:
        """Create a Draft work item. The result value is the new WorkItem."""
        async def work():
            item, events = WorkItem.create(
                tenant_id=tenant_id,
                title=title,
                actor=actor,
                now=self.clock(),
                description=description,
                priority=priority,
                due_at=due_at,
                estimated_hours=estimated_hours,
                tags=tags,
                max_tags=self.settings.max_tags,
            )
            await self.repository.add_work_item(item)
            logger.info(f"Work item {item.id} created by {actor}")
            return item, events

        return await self._execute("create_work_item", work)

    async def update_work_item(
        self,
        tenant_id: str,
        work_item_id: str,
        actor: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        priority: Optional[WorkItemPriority] = None,
        due_at: Optional[datetime] = None,
        estimated_hours: Optional[float] = None,
        clear_due_date: bool = False,
    ) -> OperationResult:
        async def work():
            item = await self._load_owned(tenant_id, work_item_id)
            events = item.update_details(
                actor,
                self.clock(),
                title=title,
                description=description,
                priority=priority,
                due_at=due_at,
                estimated_hours=estimated_hours,
                clear_due_date=clear_due_date,
            )
            await self.repository.update_work_item(item)
            return item, events

        return await self._execute("update_work_item", work)

    async def add_tag(self, tenant_id: str, work_item_id: str, tag: str, actor: str) -> OperationResult:
        async def work():
            item = await self._load_owned(tenant_id, work_item_id)
            events = item.add_tag(tag, actor, self.clock(), max_tags=self.settings.max_tags)
            await self.repository.update_work_item(item)
            return list(item.tags), events

        return await self._execute("add_tag", work)

    async def remove_tag(self, tenant_id: str, work_item_id: str, tag: str, actor: str) -> OperationResult:
        async def work():
            item = await self._load_owned(tenant_id, work_item_id)
            events = item.remove_tag(tag, actor, self.clock())
            await self.repository.update_work_item(item)
            return list(item.tags), events

        return await self._execute("remove_tag", work)

    async def change_work_item_state(
        self,
        tenant_id: str,
        work_item_id: str,
        target_state: WorkItemState,
        actor: str,
        actual_hours: Optional[float] = None,
    ) -> OperationResult:
        """
        Move a work item to another state.

        Completing or archiving cancels every Scheduled reminder in the same
        commit. The result value is the updated WorkItem.
        """
        async def work():
            item = await self._load_owned(tenant_id, work_item_id)
            previous = item.state
            events = item.change_state(target_state, actor, self.clock(), actual_hours=actual_hours)
            await self.repository.update_work_item(item)

            work_item_transitions_total.labels(from_state=previous.value, to_state=target_state.value).inc()
            cascaded = sum(1 for event in events if isinstance(event, ReminderCancelled))
            if cascaded:
                reminders_cascade_cancelled_total.labels(state=target_state.value).inc(cascaded)
            logger.info(
                f"Work item {work_item_id} moved {previous.value} -> {target_state.value} by {actor}"
                + (f", {cascaded} reminder(s) cancelled" if cascaded else "")
            )
            return item, events

        return await self._execute("change_work_item_state", work)

    async def get_overdue_work_items(self, tenant_id: str) -> OperationResult:
        items = await self.repository.list_overdue_work_items(tenant_id, self.clock())
        return OperationResult.ok(items)

    async def get_progress(self, tenant_id: str, work_item_id: str) -> OperationResult:
        async def work():
            item = await self._load_owned(tenant_id, work_item_id)
            return item.progress_percentage(), []

        return await self._execute("get_progress", work)

    # ==================== REMINDERS ====================

    async def schedule_reminder(
        self,
        tenant_id: str,
        work_item_id: str,
        fire_at: datetime,
        message: str,
        actor: str,
    ) -> OperationResult:
        """Schedule a reminder. The result value is the new reminder id."""
        async def work():
            item = await self._load_owned(tenant_id, work_item_id)
            reminder, events = item.schedule_reminder(
                fire_at, message, actor, self.clock(), max_active=self.settings.max_active_reminders
            )
            await self.repository.update_work_item(item)
            logger.info(f"Reminder {reminder.id} scheduled for {reminder.fire_at.isoformat()} on work item {item.id}")
            return reminder.id, events

        return await self._execute("schedule_reminder", work)

    async def reschedule_reminder(
        self,
        tenant_id: str,
        reminder_id: str,
        fire_at: datetime,
        actor: str,
    ) -> OperationResult:
        async def work():
            item = await self._load_owned_reminder(tenant_id, reminder_id)
            events = item.reschedule_reminder(
                reminder_id, fire_at, actor, self.clock(), max_active=self.settings.max_active_reminders
            )
            await self.repository.update_work_item(item)
            return reminder_id, events

        return await self._execute("reschedule_reminder", work)

    async def cancel_reminder(self, tenant_id: str, reminder_id: str, actor: str) -> OperationResult:
        async def work():
            item = await self._load_owned_reminder(tenant_id, reminder_id)
            events = item.cancel_reminder(reminder_id, actor, self.clock())
            await self.repository.update_work_item(item)
            return reminder_id, events

        return await self._execute("cancel_reminder", work)

    async def trigger_reminder_now(self, tenant_id: str, reminder_id: str) -> OperationResult:
        """
        Fire a Scheduled reminder immediately.

        Runs the same dispatch unit as the due-check, as a single attempt:
        a caller waiting on this must not sit through the background retry
        schedule.
        """
        async def check():
            item = await self._load_owned_reminder(tenant_id, reminder_id)
            reminder = item.get_reminder(reminder_id)
            if reminder.status != ReminderStatus.SCHEDULED:
                raise InvalidStateError.for_transition("reminder", reminder.status, ReminderStatus.TRIGGERED)
            return None, []

        checked = await self._execute("trigger_reminder_now", check)
        if not checked.success:
            return checked

        outcome = await self.dispatcher.dispatch(reminder_id, retry_delays=())

        if outcome == DispatchOutcome.TRIGGERED:
            return OperationResult.ok(reminder_id)
        if outcome == DispatchOutcome.FAILED:
            reminder = await self.repository.get_reminder_by_id(reminder_id)
            error = reminder.last_error if reminder else None
            return OperationResult.failure(f"Reminder delivery failed: {error or 'unknown error'}", "delivery")
        if outcome == DispatchOutcome.CANCELLED:
            return OperationResult.failure("Work item is closed, the reminder was cancelled instead", "state")
        if outcome == DispatchOutcome.SKIPPED:
            return OperationResult.failure("Reminder was already processed", "state")
        if outcome == DispatchOutcome.NOT_FOUND:
            return OperationResult.failure(f"Reminder {reminder_id} not found", "not_found")
        return OperationResult.failure("Reminder could not be triggered right now, try again later", "unavailable")

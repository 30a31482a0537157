"""
Domain events.

Entity operations return these values instead of queueing them on the
entity. Callers collect them and publish only after the unit of work commits.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Union

from .enums import WorkItemState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkItemCreated:
    work_item_id: str
    tenant_id: str
    title: str
    occurred_at: datetime


@dataclass(frozen=True)
class WorkItemStateChanged:
    work_item_id: str
    previous_state: WorkItemState
    new_state: WorkItemState
    occurred_at: datetime


@dataclass(frozen=True)
class ReminderScheduled:
    reminder_id: str
    work_item_id: str
    fire_at: datetime
    occurred_at: datetime


@dataclass(frozen=True)
class ReminderRescheduled:
    reminder_id: str
    work_item_id: str
    fire_at: datetime
    occurred_at: datetime


@dataclass(frozen=True)
class ReminderTriggered:
    reminder_id: str
    work_item_id: str
    occurred_at: datetime


@dataclass(frozen=True)
class ReminderFailed:
    reminder_id: str
    work_item_id: str
    error: str
    occurred_at: datetime


@dataclass(frozen=True)
class ReminderCancelled:
    reminder_id: str
    work_item_id: str
    occurred_at: datetime
    reason: Optional[str] = None


DomainEvent = Union[
    WorkItemCreated,
    WorkItemStateChanged,
    ReminderScheduled,
    ReminderRescheduled,
    ReminderTriggered,
    ReminderFailed,
    ReminderCancelled,
]


# Receives the events of one committed unit of work
EventHandler = Callable[[List[DomainEvent]], Awaitable[None]]


async def publish_events(handler: Optional[EventHandler], events: List[DomainEvent]) -> None:
    """
    Hand committed events to the handler.

    Publishing happens after the commit, so a failing handler is logged and
    never undoes or fails the operation that produced the events.
    """
    if handler is None or not events:
        return
    try:
        await handler(events)
    except Exception as e:
        logger.error(f"Event handler failed for {len(events)} event(s): {e}", exc_info=True)

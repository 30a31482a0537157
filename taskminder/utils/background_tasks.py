"""
Safe background task execution with error handling.

Prevents silent failures by:
- Logging all errors with stack traces
- Counting failures in the error metric
- Tracking task references to prevent GC
"""

import asyncio
import logging
from typing import Any, Coroutine, Optional, Set

from ..monitoring.prometheus import errors_total

logger = logging.getLogger(__name__)

# Track active tasks to prevent garbage collection
_active_background_tasks: Set[asyncio.Task] = set()


async def safe_background_task(coro: Coroutine, task_name: str) -> Any:
    """
    Wrapper for background tasks with error handling.

    Args:
        coro: Coroutine to execute
        task_name: Human-readable task name for logging

    Returns:
        Result of the coroutine if successful, None on error
    """
    try:
        result = await coro
        logger.debug(f"Background task completed: {task_name}")
        return result
    except asyncio.CancelledError:
        logger.info(f"Background task cancelled: {task_name}")
        raise
    except Exception as e:
        logger.error(
            f"Background task failed: {task_name} - {e}",
            exc_info=True
        )
        errors_total.labels(type=type(e).__name__, severity="error").inc()
        return None


def create_safe_task(
    coro: Coroutine,
    task_name: str,
    registry: Optional[Set[asyncio.Task]] = None,
) -> asyncio.Task:
    """
    Create a background task with error handling.

    Args:
        coro: Coroutine to execute
        task_name: Human-readable task name
        registry: Set holding the task until it finishes (module-wide by default)

    Returns:
        asyncio.Task object

    Example:
        task = create_safe_task(
            dispatcher.dispatch(reminder_id),
            f"dispatch-{reminder_id}"
        )
    """
    tracked = _active_background_tasks if registry is None else registry
    task = asyncio.create_task(
        safe_background_task(coro, task_name),
        name=task_name,
    )

    # Store reference to prevent garbage collection
    tracked.add(task)

    # Remove from tracking when done
    task.add_done_callback(tracked.discard)

    logger.debug(f"Created safe background task: {task_name}")
    return task

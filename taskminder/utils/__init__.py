"""Utility modules for Taskminder."""

from .datetime_utils import (
    Clock,
    FrozenClock,
    utc_now,
    ensure_utc,
    to_naive_utc,
    minutes_ago,
    get_scheduler_tz,
)

from .retry import (
    RetryExhausted,
    retry_with_backoff,
    with_retry,
    DEFAULT_RETRY_DELAYS,
)

from .background_tasks import (
    create_safe_task,
    safe_background_task,
)

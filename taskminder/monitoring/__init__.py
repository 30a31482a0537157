"""
Monitoring module for Prometheus metrics.
"""
from .prometheus import (
    due_check_batch_size,
    due_check_submitted_total,
    reminder_dispatch_total,
    reminder_dispatch_duration,
    reminder_dispatch_retries_total,
    reminder_dispatch_retries_exhausted_total,
    dispatch_pool_in_flight,
    reminders_recovered_total,
    reminders_abandoned,
    reminders_purged_total,
    reminders_cascade_cancelled_total,
    work_item_transitions_total,
    db_pool_connections,
    errors_total,
    update_db_pool_metrics,
)

__all__ = [
    'due_check_batch_size',
    'due_check_submitted_total',
    'reminder_dispatch_total',
    'reminder_dispatch_duration',
    'reminder_dispatch_retries_total',
    'reminder_dispatch_retries_exhausted_total',
    'dispatch_pool_in_flight',
    'reminders_recovered_total',
    'reminders_abandoned',
    'reminders_purged_total',
    'reminders_cascade_cancelled_total',
    'work_item_transitions_total',
    'db_pool_connections',
    'errors_total',
    'update_db_pool_metrics',
]

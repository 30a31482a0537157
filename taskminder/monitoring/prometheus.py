"""
Prometheus metrics for the reminder engine.

Retry exhaustion and abandoned reminders are the two signals an operator
must be able to alert on; everything else is for dashboards.
"""
from prometheus_client import Counter, Histogram, Gauge, Info
import logging

logger = logging.getLogger(__name__)

# Due-check Metrics
due_check_batch_size = Histogram(
    'taskminder_due_check_batch_size',
    'Number of due reminders found per due-check tick',
    buckets=(0, 1, 5, 10, 25, 50, 100, 250, 500)
)

due_check_submitted_total = Counter(
    'taskminder_due_check_submitted_total',
    'Reminders submitted to the dispatch pool',
    ['source']  # due_check, recovery
)

# Dispatch Metrics
reminder_dispatch_total = Counter(
    'taskminder_reminder_dispatch_total',
    'Reminder dispatch outcomes',
    ['outcome']  # triggered, failed, skipped, not_found, cancelled, aborted, retries_exhausted
)

reminder_dispatch_duration = Histogram(
    'taskminder_reminder_dispatch_duration_seconds',
    'Duration of a single dispatch attempt'
)

reminder_dispatch_retries_total = Counter(
    'taskminder_reminder_dispatch_retries_total',
    'Dispatch attempts retried after an infrastructure failure',
    ['error_type']
)

reminder_dispatch_retries_exhausted_total = Counter(
    'taskminder_reminder_dispatch_retries_exhausted_total',
    'Dispatches that used up every retry and were left Scheduled'
)

dispatch_pool_in_flight = Gauge(
    'taskminder_dispatch_pool_in_flight',
    'Dispatch units currently submitted and not yet finished'
)

# Recovery / Retention Metrics
reminders_recovered_total = Counter(
    'taskminder_reminders_recovered_total',
    'Missed reminders re-submitted by the recovery scan'
)

reminders_abandoned = Gauge(
    'taskminder_reminders_abandoned',
    'Scheduled reminders older than the recovery upper bound at the last scan'
)

reminders_purged_total = Counter(
    'taskminder_reminders_purged_total',
    'Terminal reminders soft-deleted by the retention job'
)

# Work Item Metrics
reminders_cascade_cancelled_total = Counter(
    'taskminder_reminders_cascade_cancelled_total',
    'Reminders cancelled because their work item was completed or archived',
    ['state']
)

work_item_transitions_total = Counter(
    'taskminder_work_item_transitions_total',
    'Work item state transitions',
    ['from_state', 'to_state']
)

# Database Metrics
db_pool_connections = Gauge(
    'taskminder_db_pool_connections',
    'Database pool connections',
    ['state']  # checked_in, checked_out, overflow
)

# Error Metrics
errors_total = Counter(
    'taskminder_errors_total',
    'Total errors',
    ['type', 'severity']
)

# System Info
app_info = Info('taskminder', 'Application information')
app_info.info({
    'name': 'taskminder',
    'version': '1.0.0'
})


def update_db_pool_metrics(pool):
    """Update database pool connection metrics."""
    try:
        db_pool_connections.labels(state='checked_in').set(pool.checkedin())
        db_pool_connections.labels(state='checked_out').set(pool.checkedout())
        db_pool_connections.labels(state='overflow').set(pool.overflow())
    except Exception as e:
        logger.warning(f"Failed to update DB pool metrics: {e}")

"""
Taskminder: work item and reminder scheduling engine.

Work items move through an explicit state machine; their reminders are
detected when due, dispatched by a bounded worker pool, retried on
infrastructure failures and reconciled after downtime.
"""

__version__ = "1.0.0"

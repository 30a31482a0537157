"""Background reminder processing: dispatch, due-check, recovery, retention."""

from .dispatcher import (
    DispatchCancelled,
    DispatchOutcome,
    INFRASTRUCTURE_ERRORS,
    ReminderDispatcher,
    WORK_ITEM_NOT_FOUND,
)
from .pool import DispatchPool
from .due_check import DueReminderScanner
from .recovery import RecoveryReport, RecoveryScanner
from .retention import CLEANUP_ACTOR, RetentionJob
from .jobs import DUE_CHECK_JOB_ID, HEALTH_JOB_ID, RECOVERY_JOB_ID, RETENTION_JOB_ID, ReminderJobs

__all__ = [
    "DispatchCancelled",
    "DispatchOutcome",
    "INFRASTRUCTURE_ERRORS",
    "ReminderDispatcher",
    "WORK_ITEM_NOT_FOUND",
    "DispatchPool",
    "DueReminderScanner",
    "RecoveryReport",
    "RecoveryScanner",
    "CLEANUP_ACTOR",
    "RetentionJob",
    "DUE_CHECK_JOB_ID",
    "HEALTH_JOB_ID",
    "RECOVERY_JOB_ID",
    "RETENTION_JOB_ID",
    "ReminderJobs",
]

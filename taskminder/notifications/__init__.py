"""Notification delivery for triggered reminders."""

from .notifier import (
    Notifier,
    NotificationError,
    LoggingNotifier,
    WebhookNotifier,
    build_notifier,
)

__all__ = [
    "Notifier",
    "NotificationError",
    "LoggingNotifier",
    "WebhookNotifier",
    "build_notifier",
]

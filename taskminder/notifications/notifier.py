"""
Reminder notification delivery.

The dispatcher calls a Notifier after it has decided a reminder should fire.
Any exception raised here is a business failure: the reminder is marked
Failed with the error text and is never retried automatically.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

import aiohttp

from config import settings

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Notification could not be delivered."""
    pass


class Notifier(ABC):
    """Delivers a reminder to its audience."""

    @abstractmethod
    async def send_reminder(self, work_item_title: str, message: str, fire_at: datetime) -> None:
        """Deliver one reminder. Raise on failure."""


class LoggingNotifier(Notifier):
    """Writes reminders to the log. Used when no delivery channel is configured."""

    async def send_reminder(self, work_item_title: str, message: str, fire_at: datetime) -> None:
        logger.info(f"Reminder for '{work_item_title}' (due {fire_at.isoformat()}): {message}")


class WebhookNotifier(Notifier):
    """Posts reminders as JSON to an HTTP endpoint."""

    def __init__(self, url: str, timeout_seconds: Optional[float] = None):
        if not url:
            raise ValueError("Webhook URL is required")
        self.url = url
        self.timeout_seconds = timeout_seconds or settings.notification_timeout_seconds

    def build_payload(self, work_item_title: str, message: str, fire_at: datetime) -> dict:
        return {
            "title": f"Reminder: {work_item_title}",
            "work_item_title": work_item_title,
            "message": message,
            "fire_at": fire_at.isoformat(),
        }

    async def send_reminder(self, work_item_title: str, message: str, fire_at: datetime) -> None:
        payload = self.build_payload(work_item_title, message, fire_at)
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.url, json=payload) as response:
                    if response.status >= 300:
                        body = await response.text()
                        raise NotificationError(
                            f"Webhook returned HTTP {response.status}: {body[:200]}"
                        )
        except NotificationError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NotificationError(f"Webhook delivery failed: {type(e).__name__}: {e}") from e

        logger.debug(f"Delivered reminder for '{work_item_title}' to webhook")


def build_notifier(url: Optional[str] = None) -> Notifier:
    """Pick the notifier from configuration."""
    url = url if url is not None else settings.notification_webhook_url
    if url:
        return WebhookNotifier(url)
    logger.warning("No notification webhook configured; reminders will only be logged")
    return LoggingNotifier()

"""Destinations that receive each new notification."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from .config import TwilioConfig
from .models import Notification
from .twilio_notifier import format_notification_sms, send_sms

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    """Abstract base class for notification destinations."""

    @abstractmethod
    def publish(self, notification: Notification) -> None:
        """
        Deliver a newly journaled notification.

        Args:
            notification: The journal entry that was just created.
        """
        pass


class ConsoleSink(NotificationSink):
    """Writes new notifications to the log."""

    def publish(self, notification: Notification) -> None:
        logger.info(f"[{notification.type}] {notification.title}: {notification.message}")


class TwilioSmsSink(NotificationSink):
    """Forwards each new notification as an SMS to the on-call operator."""

    def __init__(self, config: TwilioConfig, client=None):
        self.config = config
        self._client = client

    def publish(self, notification: Notification) -> None:
        body = format_notification_sms(notification)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            send_sms(body, self.config, client=self._client)
            return
        # the Twilio client blocks; keep it off the event loop
        future = loop.run_in_executor(None, send_sms, body, self.config, self._client)
        future.add_done_callback(self._log_failure)

    @staticmethod
    def _log_failure(future: "asyncio.Future") -> None:
        if not future.cancelled() and future.exception() is not None:
            logger.error(f"SMS forwarding failed: {future.exception()}")


def build_sinks(twilio: Optional[TwilioConfig]) -> list:
    """Console output always, SMS forwarding when enabled."""
    sinks: list = [ConsoleSink()]
    if twilio is not None and twilio.enabled:
        sinks.append(TwilioSmsSink(twilio))
        logger.info(f"Forwarding notifications by SMS to {len(twilio.to_numbers or [])} number(s)")
    return sinks

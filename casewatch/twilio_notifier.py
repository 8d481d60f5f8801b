"""Twilio SMS notification module."""

import logging
from typing import Optional

from twilio.rest import Client

from .config import TwilioConfig
from .models import Notification

logger = logging.getLogger(__name__)

# Single-segment SMS limit
MAX_SMS_LENGTH = 160


def format_notification_sms(notification: Notification) -> str:
    """Render a notification as one short SMS body."""
    body = f"{notification.title}: {notification.message}"
    if len(body) > MAX_SMS_LENGTH:
        body = body[:MAX_SMS_LENGTH - 3].rstrip() + "..."
    return body


def send_sms(message: str, config: TwilioConfig, client: Optional[Client] = None) -> int:
    """
    Send an SMS via Twilio to every configured recipient.

    Args:
        message: The message text to send.
        config: Twilio configuration.
        client: Optional pre-built Twilio client.

    Returns:
        The number of messages sent.

    Raises:
        Exception: If SMS sending fails.
    """
    if not message or not message.strip():
        logger.info("Message is empty; not sending SMS.")
        return 0

    client = client or Client(config.account_sid, config.auth_token)
    sent = 0
    for to_number in config.to_numbers or []:
        try:
            message_obj = client.messages.create(
                body=message,
                from_=config.from_number,
                to=to_number,
            )
        except Exception as e:
            error_str = str(e)
            if "20003" in error_str or "Authenticate" in error_str or "401" in error_str:
                logger.error(
                    "Twilio authentication failed (Error 20003). "
                    "Check TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN; "
                    f"current Account SID starts with {(config.account_sid or '')[:10]}..."
                )
            else:
                logger.error(f"Failed to send SMS to {to_number}: {e}")
            raise
        logger.info(f"SMS sent successfully. SID: {message_obj.sid}")
        logger.debug(f"Message preview: {message[:50]}...")
        sent += 1
    return sent

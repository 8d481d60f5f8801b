"""Configuration management."""

import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_API_BASE = "https://whatsapp.mallikahospitals.in"


@dataclass
class ApiConfig:
    """Remote case-management API configuration."""
    base_url: str
    token: Optional[str]      # bearer token, skips login when set
    username: Optional[str]
    password: Optional[str]
    timeout_seconds: float = 10.0


@dataclass
class PollConfig:
    """Polling configuration."""
    interval_seconds: float = 15.0
    live_feed_limit: int = 15
    patient_limit: int = 50
    patient_search: str = ""
    appointment_status: str = "all"  # "all" or one of models.STATUSES


@dataclass
class NotificationConfig:
    """Journal and toast configuration."""
    journal_capacity: int = 50
    toast_duration_seconds: float = 6.0


@dataclass
class TwilioConfig:
    """Twilio SMS forwarding configuration."""
    enabled: bool
    account_sid: Optional[str] = None
    auth_token: Optional[str] = None
    from_number: Optional[str] = None
    to_numbers: Optional[List[str]] = None


@dataclass
class AppConfig:
    """Complete application configuration."""
    api: ApiConfig
    poll: PollConfig
    notification: NotificationConfig
    twilio: TwilioConfig
    log_level: str = "INFO"


def _parse_list_env(key: str, default: List[str]) -> List[str]:
    """Parse comma-separated list from environment variable."""
    value = os.getenv(key, "")
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_bool_env(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config() -> AppConfig:
    """
    Load configuration from environment variables.

    Raises:
        ValueError: If required configuration values are missing or invalid.
    """
    # API
    api_base = os.getenv("CASEWATCH_API_BASE", DEFAULT_API_BASE).rstrip("/")
    api_token = os.getenv("CASEWATCH_API_TOKEN") or None
    api_username = os.getenv("CASEWATCH_USERNAME") or None
    api_password = os.getenv("CASEWATCH_PASSWORD") or None
    http_timeout = float(os.getenv("CASEWATCH_HTTP_TIMEOUT", "10"))

    # Polling
    interval_seconds = float(os.getenv("POLL_INTERVAL_SECONDS", "15"))
    live_feed_limit = int(os.getenv("LIVE_FEED_LIMIT", "15"))
    patient_limit = int(os.getenv("PATIENT_LIMIT", "50"))
    patient_search = os.getenv("PATIENT_SEARCH", "")
    appointment_status = os.getenv("APPOINTMENT_STATUS_FILTER", "all").strip().lower() or "all"

    # Notifications
    journal_capacity = int(os.getenv("JOURNAL_CAPACITY", "50"))
    toast_duration = float(os.getenv("TOAST_DURATION_SECONDS", "6"))

    # Twilio (optional SMS forwarding of new notifications)
    sms_enabled = _parse_bool_env("SMS_FORWARDING_ENABLED", False)
    twilio_account_sid = os.getenv("TWILIO_ACCOUNT_SID")
    twilio_auth_token = os.getenv("TWILIO_AUTH_TOKEN")
    twilio_from_number = os.getenv("TWILIO_FROM_NUMBER")
    twilio_to_numbers = _parse_list_env("TWILIO_TO_NUMBER", [])

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    # Validate required fields
    missing = []
    if not api_token and not (api_username and api_password):
        missing.append("CASEWATCH_API_TOKEN (or CASEWATCH_USERNAME and CASEWATCH_PASSWORD)")
    if sms_enabled:
        if not twilio_account_sid:
            missing.append("TWILIO_ACCOUNT_SID")
        if not twilio_auth_token:
            missing.append("TWILIO_AUTH_TOKEN")
        if not twilio_from_number:
            missing.append("TWILIO_FROM_NUMBER")
        if not twilio_to_numbers:
            missing.append("TWILIO_TO_NUMBER")

    if missing:
        raise ValueError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    if interval_seconds <= 0:
        raise ValueError("POLL_INTERVAL_SECONDS must be positive")
    if journal_capacity < 1:
        raise ValueError("JOURNAL_CAPACITY must be at least 1")

    return AppConfig(
        api=ApiConfig(
            base_url=api_base,
            token=api_token,
            username=api_username,
            password=api_password,
            timeout_seconds=http_timeout,
        ),
        poll=PollConfig(
            interval_seconds=interval_seconds,
            live_feed_limit=live_feed_limit,
            patient_limit=patient_limit,
            patient_search=patient_search,
            appointment_status=appointment_status,
        ),
        notification=NotificationConfig(
            journal_capacity=journal_capacity,
            toast_duration_seconds=toast_duration,
        ),
        twilio=TwilioConfig(
            enabled=sms_enabled,
            account_sid=twilio_account_sid,
            auth_token=twilio_auth_token,
            from_number=twilio_from_number,
            to_numbers=twilio_to_numbers,
        ),
        log_level=log_level,
    )

"""Configuration helpers for NowWorking."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import timezone, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Settings:
    """Runtime configuration values loaded from environment variables."""

    api_key: str
    database_path: Path
    slack_signing_secret: str = ""
    chatwork_api_token: str = ""
    chatwork_webhook_token: str = ""
    timezone: str = "UTC"

    @property
    def tz(self) -> tzinfo:
        if self.timezone.upper() == "UTC":
            return timezone.utc
        return ZoneInfo(self.timezone)


def load_settings(env_file: str | None = None) -> Settings:
    """Load settings from the environment, optionally from a specific file."""

    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    db_path = Path(os.getenv("DATABASE_PATH", "now_working.db")).expanduser()
    api_key = os.getenv("API_KEY")
    if not api_key:
        raise RuntimeError("API_KEY must be configured")

    tz_name = os.getenv("TIMEZONE", "UTC")
    settings = Settings(
        api_key=api_key,
        database_path=db_path,
        slack_signing_secret=os.getenv("SLACK_SIGNING_SECRET", ""),
        chatwork_api_token=os.getenv("CHATWORK_API_TOKEN", ""),
        chatwork_webhook_token=os.getenv("CHATWORK_WEBHOOK_TOKEN", ""),
        timezone=tz_name,
    )
    try:
        settings.tz
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise RuntimeError(f"TIMEZONE {tz_name!r} is not a known time zone") from exc
    if not settings.slack_signing_secret:
        logger.warning("SLACK_SIGNING_SECRET is not set. Slack commands will be rejected.")
    if not settings.chatwork_api_token or not settings.chatwork_webhook_token:
        logger.warning("CHATWORK_API_TOKEN or CHATWORK_WEBHOOK_TOKEN is not set. Chatwork webhooks will be rejected.")
    return settings


__all__ = ["Settings", "load_settings"]

# config.py
"""
Runtime configuration for the learning bot.

All environment variables are read once, at startup, into a frozen Settings
object. The object is then handed to the signature verifier, the handlers and
the integration clients; nothing else reads os.environ.

A .env file is loaded for local development (see app.py).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import time as dt_time
from typing import Mapping
from zoneinfo import ZoneInfo


def _parse_hhmm(value: str, name: str) -> dt_time:
    try:
        hour, minute = value.strip().split(":")
        return dt_time(int(hour), int(minute))
    except ValueError:
        raise ValueError(f"{name} must be HH:MM, got {value!r}") from None


def _parse_int(value: str, name: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


@dataclass(frozen=True)
class Settings:
    # Slack
    slack_signing_secret: str = field(default="", repr=False)
    slack_bot_token: str = field(default="", repr=False)
    learning_channel_id: str = ""

    # Scheduling
    timezone: str = "Europe/Paris"
    default_start_time: dt_time = dt_time(12, 0)
    duration_minutes: int = 60
    reminder_hours: int = 0
    reminder_minutes: int = 0
    same_day_reminder_time: dt_time = dt_time(11, 0)

    # Google Calendar (OAuth refresh token)
    gcal_client_id: str = ""
    gcal_client_secret: str = field(default="", repr=False)
    gcal_redirect_uri: str = ""
    gcal_refresh_token: str = field(default="", repr=False)
    gcal_calendar_id: str = "primary"

    # Notion
    notion_api_key: str = field(default="", repr=False)
    notion_parent_page_id: str = ""

    # Diagnostics
    admin_token: str = field(default="", repr=False)
    port: int = 4000

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from environment variables (os.environ by default)."""
        env = os.environ if environ is None else environ

        def get(name: str, default: str = "") -> str:
            return (env.get(name) or default).strip()

        return cls(
            slack_signing_secret=get("SLACK_SIGNING_SECRET"),
            slack_bot_token=get("SLACK_BOT_TOKEN"),
            learning_channel_id=get("LEARNING_CHANNEL_ID"),
            timezone=get("LEARNING_TIMEZONE", "Europe/Paris"),
            default_start_time=_parse_hhmm(
                get("LEARNING_DEFAULT_START_TIME", "12:00"), "LEARNING_DEFAULT_START_TIME"
            ),
            duration_minutes=_parse_int(
                get("LEARNING_DURATION_MINUTES", "60"), "LEARNING_DURATION_MINUTES"
            ),
            reminder_hours=_parse_int(get("LEARNING_REMINDER_HOURS", "0"), "LEARNING_REMINDER_HOURS"),
            reminder_minutes=_parse_int(
                get("LEARNING_REMINDER_MINUTES", "0"), "LEARNING_REMINDER_MINUTES"
            ),
            same_day_reminder_time=_parse_hhmm(
                get("LEARNING_SAME_DAY_REMINDER_TIME", "11:00"), "LEARNING_SAME_DAY_REMINDER_TIME"
            ),
            gcal_client_id=get("GCAL_OAUTH_CLIENT_ID"),
            gcal_client_secret=get("GCAL_OAUTH_CLIENT_SECRET"),
            gcal_redirect_uri=get("GCAL_OAUTH_REDIRECT_URI"),
            gcal_refresh_token=get("GCAL_OAUTH_REFRESH_TOKEN"),
            gcal_calendar_id=get("GCAL_CALENDAR_ID", "primary"),
            notion_api_key=get("NOTION_API_KEY"),
            notion_parent_page_id=get("NOTION_PARENT_PAGE_ID"),
            admin_token=get("ADMIN_TOKEN"),
            port=_parse_int(get("PORT", "4000"), "PORT"),
        )

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def redacted(self) -> dict:
        """
        Which pieces of configuration are present, without their values.
        Used by /debug/status.
        """
        return {
            "slack": {
                "hasBotToken": bool(self.slack_bot_token),
                "hasSigningSecret": bool(self.slack_signing_secret),
                "learningChannel": bool(self.learning_channel_id),
            },
            "notion": {
                "hasApiKey": bool(self.notion_api_key),
                "hasParentPageId": bool(self.notion_parent_page_id),
            },
            "gcal": {
                "hasClientId": bool(self.gcal_client_id),
                "hasClientSecret": bool(self.gcal_client_secret),
                "hasRedirectUri": bool(self.gcal_redirect_uri),
                "hasRefreshToken": bool(self.gcal_refresh_token),
                "calendarId": "set" if self.gcal_calendar_id else "missing",
            },
            "reminders": {
                "offsetHours": self.reminder_hours,
                "offsetMinutes": self.reminder_minutes,
                "sameDayAt": self.same_day_reminder_time.strftime("%H:%M"),
            },
        }

# reminders.py
"""
Reminder scheduling for a learning session.

Two reminders at most:
  1) start time minus LEARNING_REMINDER_HOURS / LEARNING_REMINDER_MINUTES
     (only when the offset is positive),
  2) the same day at LEARNING_SAME_DAY_REMINDER_TIME (local).
Reminders that would fire in the past are skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

import requests

from config import Settings
from learning import LearningSubmission
from messages import offset_reminder_text, same_day_reminder_text
from slack_api import SlackApiError, SlackClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reminder:
    kind: str
    post_at: datetime
    text: str

    @property
    def post_at_epoch(self) -> int:
        return int(self.post_at.timestamp())


def plan_reminders(sub: LearningSubmission, start_at: datetime, now: datetime, settings: Settings) -> list[Reminder]:
    reminders = []

    offset = timedelta(hours=settings.reminder_hours, minutes=settings.reminder_minutes)
    if offset > timedelta(0):
        at = start_at - offset
        if at > now:
            reminders.append(Reminder("offset", at, offset_reminder_text(sub)))
        else:
            logger.info("Offset reminder for %r skipped: %s is in the past", sub.title, at.isoformat())

    same_day = start_at.replace(
        hour=settings.same_day_reminder_time.hour,
        minute=settings.same_day_reminder_time.minute,
        second=0,
        microsecond=0,
    )
    if same_day > now:
        reminders.append(Reminder("same_day", same_day, same_day_reminder_text(sub, start_at)))
    else:
        logger.info("Same-day reminder for %r skipped: %s is in the past", sub.title, same_day.isoformat())

    return reminders


def schedule_reminders(slack: SlackClient, channel: str, reminders: list[Reminder]) -> list[Reminder]:
    """
    Schedule each reminder independently. Returns the ones Slack refused
    (e.g. time_too_far for sessions more than 120 days out).
    """
    failed = []
    for r in reminders:
        try:
            slack.schedule_message(channel=channel, post_at=r.post_at_epoch, text=r.text)
        except (SlackApiError, requests.RequestException):
            logger.exception("Could not schedule %s reminder in %s at %s", r.kind, channel, r.post_at.isoformat())
            failed.append(r)
            continue
        logger.info("Scheduled %s reminder in %s at %s", r.kind, channel, r.post_at.isoformat())
    return failed

# core_slack.py
"""
Shared Slack logic (no Flask imports here).
- /ping answers "pong".
- /learning acknowledges at once, then opens the learning modal.
- A learning modal submission is validated, acknowledged, then published
  (calendar event, channel recap, reminders, Notion page) in the background.

Handlers take the verified form dict plus a BotContext and return
(status_code, headers_dict, body_string).
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

import requests

from config import Settings
from google_calendar import CalendarError, GoogleCalendar, meet_link
from learning import LearningSubmission, extract_submission, validate_submission
from messages import (
    CALENDAR_FAILED_NOTICE,
    LEARNING_CALLBACK_ID,
    MISSING_CHANNEL_NOTICE,
    MODAL_FAILED_NOTICE,
    REMINDER_FAILED_NOTICE,
    SUBMISSION_FAILED_NOTICE,
    build_learning_modal,
    build_recap_blocks,
    calendar_description,
    recap_text,
)
from notion import NotionClient, NotionError
from reminders import plan_reminders, schedule_reminders
from slack_api import SlackApiError, SlackClient

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}

# Errors an integration call may raise; anything else is a bug and still
# ends up in the detached runner's handler.
INTEGRATION_ERRORS = (SlackApiError, CalendarError, NotionError, requests.RequestException)


# ---------- Detached work ----------

def run_in_background(work: Callable[[], None], on_error: Callable[[Exception], None]) -> None:
    """
    Run work on a daemon thread once the HTTP response is on its way.
    Failures go to on_error; the original response has already been sent.
    """

    def _run():
        try:
            work()
        except Exception as exc:
            logger.exception("Background task failed")
            on_error(exc)

    threading.Thread(target=_run, daemon=True).start()


@dataclass
class BotContext:
    settings: Settings
    slack: SlackClient
    calendar: GoogleCalendar
    notion: NotionClient
    runner: Callable[[Callable[[], None], Callable[[Exception], None]], None] = run_in_background
    now: Callable[[], datetime] = field(default=lambda: datetime.now().astimezone())

    @classmethod
    def from_settings(cls, settings: Settings) -> "BotContext":
        return cls(
            settings=settings,
            slack=SlackClient(settings.slack_bot_token),
            calendar=GoogleCalendar(settings),
            notion=NotionClient(settings),
        )

    def notify_user(self, user_id: str, text: str) -> None:
        """Fallback path: DM the user. Never raises."""
        try:
            self.slack.post_message(channel=user_id, text=text)
        except INTEGRATION_ERRORS:
            logger.exception("Could not DM %s", user_id)


def _json(status: int, body: dict) -> tuple[int, dict, str]:
    return status, JSON_HEADERS, json.dumps(body)


# ---------- Slash commands ----------

def handle_command(form: dict, ctx: BotContext) -> tuple[int, dict, str]:
    command = form.get("command", "")
    user_id = form.get("user_id", "")

    if command == "/ping":
        return _json(200, {"response_type": "ephemeral", "text": "pong :table_tennis_paddle_and_ball:"})

    if command == "/learning":
        trigger_id = form.get("trigger_id", "")
        view = build_learning_modal(form.get("channel_id", ""), ctx.settings.default_start_time)

        # Empty 200 now; Slack gives up on the command after 3s.
        ctx.runner(
            lambda: ctx.slack.open_view(trigger_id, view),
            lambda exc: ctx.notify_user(user_id, MODAL_FAILED_NOTICE),
        )
        return 200, {}, ""

    logger.info("Unknown command %r", command)
    return 404, {"Content-Type": "text/plain; charset=utf-8"}, "Unknown command"


# ---------- Interactions ----------

def handle_interactive(form: dict, ctx: BotContext) -> tuple[int, dict, str]:
    """
    Slack posts a form field named 'payload' that is a JSON string.
    Only learning_form submissions are acted on; everything else is ACKed.
    """
    payload_raw = form.get("payload", "")
    if not payload_raw:
        return 200, {}, ""

    try:
        payload = json.loads(payload_raw)
    except ValueError:
        logger.warning("Interaction payload is not valid JSON")
        return 400, {"Content-Type": "text/plain; charset=utf-8"}, "Bad Request"

    if not isinstance(payload, dict):
        logger.warning("Interaction payload is not a JSON object")
        return 400, {"Content-Type": "text/plain; charset=utf-8"}, "Bad Request"

    view = payload.get("view")
    if not isinstance(view, dict):
        view = {}
    if payload.get("type") != "view_submission" or view.get("callback_id") != LEARNING_CALLBACK_ID:
        return 200, {}, ""

    sub = extract_submission(payload)
    errors = validate_submission(sub)
    if errors:
        return _json(200, {"response_action": "errors", "errors": errors})

    channel = ctx.settings.learning_channel_id
    if not channel:
        logger.error("LEARNING_CHANNEL_ID is not set")
        ctx.runner(
            lambda: ctx.slack.post_message(channel=sub.submitted_by, text=MISSING_CHANNEL_NOTICE),
            lambda exc: None,
        )
        return _json(200, {"response_action": "clear"})

    ctx.runner(
        lambda: publish_learning(sub, channel, ctx),
        lambda exc: ctx.notify_user(sub.submitted_by, SUBMISSION_FAILED_NOTICE.format(title=sub.title)),
    )
    return _json(200, {"response_action": "clear"})


def publish_learning(sub: LearningSubmission, channel: str, ctx: BotContext) -> None:
    """
    Fan out a validated submission. Only a failed recap aborts the rest;
    calendar, reminder and Notion failures are logged (calendar and reminder
    ones also DMed to the submitter) and the remaining steps still run.
    """
    settings = ctx.settings
    start_at = sub.start_at(settings.tz, settings.default_start_time)

    event = None
    if ctx.calendar.configured:
        try:
            event = ctx.calendar.create_event(
                summary=sub.title,
                description=calendar_description(sub),
                start=start_at,
                end=start_at + timedelta(minutes=settings.duration_minutes),
                timezone=settings.timezone,
            )
        except INTEGRATION_ERRORS:
            logger.exception("Calendar event for %r failed", sub.title)
            ctx.notify_user(sub.submitted_by, CALENDAR_FAILED_NOTICE.format(title=sub.title))
    else:
        logger.info("Google Calendar not configured, no event for %r", sub.title)

    link = meet_link(event) if event else None
    ctx.slack.post_message(channel=channel, text=recap_text(sub), blocks=build_recap_blocks(sub, start_at, link))

    reminders = plan_reminders(sub, start_at, ctx.now(), settings)
    failed = schedule_reminders(ctx.slack, channel, reminders)
    if failed:
        ctx.notify_user(sub.submitted_by, REMINDER_FAILED_NOTICE.format(title=sub.title, count=len(failed)))

    try:
        ctx.notion.create_learning_page(sub, start_at)
    except INTEGRATION_ERRORS:
        logger.exception("Notion page for %r failed", sub.title)
